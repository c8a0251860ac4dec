import logging
from typing import Any

from sqlalchemy.orm import Session
from sqlmodel import col

from default_registry import models, parsers, serializers, util
from default_registry.db import rollback_on_error
from default_registry.exceptions import BusinessRuleError
from default_registry.i18n import _
from default_registry.settings import app_settings

logger = logging.getLogger(__name__)


def get_default_reasons(
    session: Session, pagination: parsers.Pagination, enabled: bool | None = None
) -> serializers.Page[serializers.DefaultReasonRead]:
    query = models.DefaultReason.ordered(session)
    if enabled is not None:
        query = query.filter(models.DefaultReason.enabled == enabled)
    return util.paginate(query, pagination, serializers.DefaultReasonRead.model_validate)


def get_default_reason(session: Session, id: int) -> serializers.DefaultReasonRead | None:
    reason = models.DefaultReason.first_by(session, "id", id)
    if not reason:
        return None
    return serializers.DefaultReasonRead.model_validate(reason)


def get_enabled_reasons(session: Session) -> list[serializers.ReasonOption]:
    """Return the enabled default reasons, for selection when submitting an application."""
    query = models.DefaultReason.ordered(session).filter(models.DefaultReason.enabled == True)  # noqa: E712
    return [serializers.ReasonOption.model_validate(reason) for reason in query]


def get_renewal_reasons(session: Session) -> list[serializers.RenewalReasonRead]:
    """Return the enabled renewal reasons, for selection when submitting a renewal."""
    query = models.RenewalReason.ordered(session).filter(models.RenewalReason.enabled == True)  # noqa: E712
    return [serializers.RenewalReasonRead.model_validate(reason) for reason in query]


def create_default_reason(
    session: Session, payload: parsers.DefaultReasonCreate, created_by: str
) -> serializers.DefaultReasonRead:
    with rollback_on_error(session):
        reason = models.DefaultReason.create(session, **payload.model_dump(), created_by=created_by)
        models.OperationLog.create(
            session,
            type=models.OperationType.DEFAULT_REASON_CREATED,
            object_id=str(reason.id),
            username=created_by,
            data=payload.model_dump(),
        )
        session.commit()

    logger.info("Created default reason %s by %s", reason.id, created_by)
    return serializers.DefaultReasonRead.model_validate(reason)


def update_default_reason(
    session: Session, id: int, payload: parsers.DefaultReasonUpdate, updated_by: str
) -> serializers.DefaultReasonRead | None:
    with rollback_on_error(session):
        reason = models.DefaultReason.first_by(session, "id", id)
        if not reason:
            return None

        reason.update(session, **payload.model_dump(), updated_by=updated_by)
        models.OperationLog.create(
            session,
            type=models.OperationType.DEFAULT_REASON_UPDATED,
            object_id=str(reason.id),
            username=updated_by,
            data=payload.model_dump(),
        )
        session.commit()

    logger.info("Updated default reason %s by %s", id, updated_by)
    return serializers.DefaultReasonRead.model_validate(reason)


def delete_default_reason(session: Session, id: int, deleted_by: str) -> bool:
    """
    Delete a default reason.

    :return: Whether the reason existed.
    :raise IntegrityError: If an application or a default episode references the reason.
    """
    with rollback_on_error(session):
        reason = models.DefaultReason.first_by(session, "id", id)
        if not reason:
            return False

        session.delete(reason)
        session.flush()
        models.OperationLog.create(
            session,
            type=models.OperationType.DEFAULT_REASON_DELETED,
            object_id=str(id),
            username=deleted_by,
            data={"reason": reason.reason},
        )
        session.commit()

    logger.info("Deleted default reason %s by %s", id, deleted_by)
    return True


def batch_update_status(session: Session, ids: list[int], enabled: bool) -> int:
    """
    Enable or disable default reasons.

    :return: The number of reasons that exist among ``ids``.
    """
    with rollback_on_error(session):
        count = (
            session.query(models.DefaultReason)
            .filter(col(models.DefaultReason.id).in_(ids))
            .update({models.DefaultReason.enabled: enabled}, synchronize_session=False)
        )
        session.commit()

    logger.info("Set enabled=%s on %d default reasons (ids=%s)", enabled, count, ids)
    return count


def get_default_reasons_for_application(session: Session, ids: list[int]) -> list[models.DefaultReason]:
    """
    Return the default reasons with these IDs, ignoring duplicates.

    If ``REJECT_DISABLED_REASONS`` is set, disabled reasons are rejected. Otherwise, they are accepted, since an
    operator might have selected a reason before it was disabled.

    :param session: The database session.
    :param ids: The IDs of the default reasons.
    :return: The default reasons, in the order of ``ids``.
    :raise BusinessRuleError: If a reason doesn't exist, or is disabled and disabled reasons are rejected.
    """
    unique_ids = list(dict.fromkeys(ids))
    found = {
        reason.id: reason
        for reason in session.query(models.DefaultReason).filter(col(models.DefaultReason.id).in_(unique_ids))
    }

    if missing := [id for id in unique_ids if id not in found]:
        raise BusinessRuleError(
            _("Default reasons not found: %(ids)s", ids=", ".join(str(id) for id in missing))
        )

    if app_settings.reject_disabled_reasons:
        if disabled := [id for id in unique_ids if not found[id].enabled]:
            raise BusinessRuleError(
                _("Default reasons are disabled: %(ids)s", ids=", ".join(str(id) for id in disabled))
            )

    return [found[id] for id in unique_ids]


def load_reasons(session: Session, entries: list[dict[str, Any]], *, renewal: bool = False) -> tuple[int, int]:
    """
    Create or update catalog entries, matching existing entries by their ``reason`` text.

    :param session: The database session.
    :param entries: Objects with a ``reason`` key, and optional ``detail``, ``enabled`` and ``sort_order`` keys.
    :param renewal: Whether to load renewal reasons instead of default reasons.
    :return: The number of created and updated entries.
    """
    model: type[models.DefaultReason] | type[models.RenewalReason] = (
        models.RenewalReason if renewal else models.DefaultReason
    )
    fields = {"enabled", "sort_order"} if renewal else {"detail", "enabled", "sort_order"}

    created = updated = 0
    with rollback_on_error(session):
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("reason"):
                raise ValueError(f"Each entry must be an object with a non-empty 'reason': {entry!r}")

            data = {key: value for key, value in entry.items() if key in fields}
            if obj := model.first_by(session, "reason", entry["reason"]):
                obj.update(session, **data)
                updated += 1
            else:
                model.create(session, reason=entry["reason"], **data)
                created += 1
        session.commit()

    return created, updated
