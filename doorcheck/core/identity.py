"""Per-installation device identity."""
import logging
import secrets
import string

from doorcheck.core.clock import Clock
from doorcheck.core.storage import DEVICE_ID_KEY, KeyValueStore
from doorcheck.errors import StorageError

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36[remainder])
    return "".join(reversed(digits))


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def new_device_id(clock: Clock) -> str:
    return f"device_{clock.millis()}_{random_suffix()}"


def get_or_create_device_id(store: KeyValueStore, clock: Clock) -> str:
    """
    Return this installation's device id, creating and persisting it once.

    If the store is unavailable a fresh id is returned without persisting
    it, so the caller keeps working but the id will not survive a restart.
    """
    try:
        stored = store.get(DEVICE_ID_KEY)
        if stored:
            return stored.decode("utf-8")
        device_id = new_device_id(clock)
        store.set(DEVICE_ID_KEY, device_id.encode("utf-8"))
        logger.info(f"Created device id {device_id}")
        return device_id
    except (StorageError, UnicodeDecodeError) as e:
        device_id = new_device_id(clock)
        logger.warning(f"Device id storage unavailable ({e}), using unpersisted id {device_id}")
        return device_id
