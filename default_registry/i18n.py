import gettext
from pathlib import Path
from typing import Any

from default_registry.settings import app_settings

localedir = Path(__file__).absolute().parent.parent / "locale"

# Catalogs are compiled with `pybabel compile -d locale`. Languages without a compiled catalog use the source strings.
translators = {
    path.name: gettext.translation("messages", localedir, languages=[path.name])
    for path in (localedir.iterdir() if localedir.is_dir() else ())
    if (path / "LC_MESSAGES" / "messages.mo").is_file()
}


def _(message: str, language: str | None = None, **kwargs: Any) -> str:
    translator = translators.get(language or app_settings.language, gettext.NullTranslations())
    return translator.gettext(message) % kwargs


def i(message: str) -> str:
    """Use this identity function to extract messages only."""
    return message
