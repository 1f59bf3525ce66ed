import logging
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)

DEFAULT_NOISE_PREFIXES = ("ALL_", "HTTP_")


def normalize_collection(
    collection: Any, noise_prefixes: Sequence[str] = DEFAULT_NOISE_PREFIXES
) -> dict[str, str]:
    """
    Flattens a request collection (headers, cookies, form fields, server variables) into a plain
    str -> str mapping.

    Values that are not strings are read through their `value` attribute, which is how cookie
    morsels expose their content. When even that fails the error text is stored in place of the
    value, so the key still shows up in the report. Keys that can no longer be read are left out,
    and failing to read the collection itself yields an empty mapping.
    """
    prefixes = tuple(noise_prefixes)
    normalized: dict[str, str] = {}

    try:
        # Copy the keys first, the collection may change while it is read.
        keys = list(_keys(collection))
    except Exception:
        logger.exception("Unable to read request collection")
        return {}

    for key in keys:
        if key is None:
            continue

        try:
            string_key = key if isinstance(key, str) else str(key)
        except Exception:
            logger.exception("Unable to read request collection key")
            continue

        # Server variables repeat the headers under these prefixes.
        if prefixes and string_key.startswith(prefixes):
            continue

        try:
            value = collection[key]
        except Exception:
            # Removed or unreadable since the keys were copied.
            logger.exception(f"Unable to read request collection value for {string_key!r}")
            continue

        if not isinstance(value, str):
            try:
                value = value.value
            except Exception as e:
                normalized[string_key] = str(e)
                continue

        if value is None:
            continue
        normalized[string_key] = value if isinstance(value, str) else str(value)

    return normalized


def _keys(collection: Any) -> Iterable[Any]:
    if collection is None:
        raise TypeError("Request collection is missing")
    keys = getattr(collection, "keys", None)
    if callable(keys):
        return keys()
    return iter(collection)
