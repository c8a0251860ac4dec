"""init

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18 10:12:41.218330

"""
from alembic import op
import sqlalchemy as sa
import sqlmodel  # added

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None

severity = sa.Enum("HIGH", "MEDIUM", "LOW", name="severity")
application_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="applicationstatus")


def upgrade() -> None:
    op.create_table(
        "customer",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_code", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("customer_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("industry", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("region", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("latest_external_rating", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("status", sa.Enum("NORMAL", "DEFAULT", name="customerstatus"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_code"),
        sa.UniqueConstraint("customer_name"),
    )
    op.create_table(
        "default_reason",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reason", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("detail", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_by", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("updated_by", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("create_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("update_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "renewal_reason",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reason", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("create_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "default_application",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("application_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("customer_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("latest_external_rating", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("severity", severity, nullable=False),
        sa.Column("status", application_status, nullable=False),
        sa.Column("applicant", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("remark", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("approver", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("approve_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approve_remark", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("create_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("update_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("application_id"),
    )
    op.create_index("ix_default_application_applicant", "default_application", ["applicant"])
    op.create_index("ix_default_application_customer_id", "default_application", ["customer_id"])
    op.create_index("ix_default_application_status", "default_application", ["status"])
    op.create_table(
        "application_default_reason",
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.Column("default_reason_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["application_id"], ["default_application.id"]),
        sa.ForeignKeyConstraint(["default_reason_id"], ["default_reason.id"]),
        sa.PrimaryKeyConstraint("application_id", "default_reason_id"),
    )
    op.create_table(
        "attachment",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("file_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("file_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("file_url", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("business_type", sa.Enum("DEFAULT_APPLICATION", name="attachmentbusinesstype"), nullable=False),
        sa.Column("business_id", sa.Integer(), nullable=False),
        sa.Column("uploaded_by", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("upload_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("file_id"),
    )
    op.create_index("ix_attachment_business_id", "attachment", ["business_id"])
    op.create_table(
        "default_customer",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("severity", severity, nullable=False),
        sa.Column("applicant", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("application_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("approver", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("approve_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("latest_external_rating", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["application_id"], ["default_application.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_default_customer_applicant", "default_customer", ["applicant"])
    op.create_index("ix_default_customer_customer_id", "default_customer", ["customer_id"])
    op.create_index(
        "uq_default_customer_active_customer_id",
        "default_customer",
        ["customer_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_table(
        "default_customer_reason",
        sa.Column("default_customer_id", sa.Integer(), nullable=False),
        sa.Column("default_reason_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["default_customer_id"], ["default_customer.id"]),
        sa.ForeignKeyConstraint(["default_reason_id"], ["default_reason.id"]),
        sa.PrimaryKeyConstraint("default_customer_id", "default_reason_id"),
    )
    op.create_table(
        "renewal",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("renewal_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("customer_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("status", application_status, nullable=False),
        sa.Column("applicant", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("remark", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("approver", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("approve_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approve_remark", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("renewal_reason_id", sa.Integer(), nullable=False),
        sa.Column("create_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("update_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["renewal_reason_id"], ["renewal_reason.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("renewal_id"),
    )
    op.create_index("ix_renewal_applicant", "renewal", ["applicant"])
    op.create_index("ix_renewal_customer_id", "renewal", ["customer_id"])
    op.create_index("ix_renewal_status", "renewal", ["status"])
    op.create_index(
        "uq_renewal_pending_customer_id",
        "renewal",
        ["customer_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )
    op.create_table(
        "operation_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "DEFAULT_APPLICATION_CREATED",
                "DEFAULT_APPLICATION_APPROVED",
                "DEFAULT_APPLICATION_REJECTED",
                "RENEWAL_CREATED",
                "RENEWAL_APPROVED",
                "RENEWAL_REJECTED",
                "DEFAULT_REASON_CREATED",
                "DEFAULT_REASON_UPDATED",
                "DEFAULT_REASON_DELETED",
                name="operationtype",
            ),
            nullable=False,
        ),
        sa.Column("object_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("username", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_operation_log_object_id", "operation_log", ["object_id"])


def downgrade() -> None:
    op.drop_table("operation_log")
    op.drop_table("renewal")
    op.drop_table("default_customer_reason")
    op.drop_table("default_customer")
    op.drop_table("attachment")
    op.drop_table("application_default_reason")
    op.drop_table("default_application")
    op.drop_table("renewal_reason")
    op.drop_table("default_reason")
    op.drop_table("customer")
    for name in ("operationtype", "attachmentbusinesstype", "applicationstatus", "severity", "customerstatus"):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
