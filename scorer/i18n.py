import gettext
import os
from pathlib import Path


def get_translator():
    """Return a gettext translator based on SCORER_LANG, defaulting to English.

    If translation files are not available, falls back to no-op gettext.
    """
    lang = os.getenv("SCORER_LANG", "en")
    locales_dir = Path(__file__).parent / "locales"
    t = gettext.translation("scorer", localedir=str(locales_dir), languages=[lang], fallback=True)
    return t.gettext


_ = get_translator()
