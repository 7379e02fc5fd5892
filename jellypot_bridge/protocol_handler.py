"""
jellypot:// URL handling.

The Jellyfin web page opens jellypot://<itemId> links; registering the protocol
in HKEY_CLASSES_ROOT makes Windows start the bridge with the link as argument.
"""

import os
import sys
import logging

from jellypot_bridge.utils.constants import PROTOCOL_NAME, PROTOCOL_PREFIX

logger = logging.getLogger(__name__)


def parse_item_url(url):
    """
    Extract the item id from a jellypot:// URL.

    Raises:
        ValueError: If the URL does not use the jellypot scheme or has no item id.
    """
    if not url or not url.startswith(PROTOCOL_PREFIX):
        raise ValueError(f"Not a {PROTOCOL_PREFIX} URL: {url!r}")
    item_id = url[len(PROTOCOL_PREFIX):].rstrip("/")
    if not item_id:
        raise ValueError(f"No item id in URL: {url!r}")
    return item_id


def get_handler_command():
    """Command line Windows runs for a jellypot:// link; %1 is the URL."""
    if getattr(sys, 'frozen', False):
        return f'"{os.path.abspath(sys.executable)}" "%1"'
    return f'"{os.path.abspath(sys.executable)}" -m jellypot_bridge.cli "%1"'


def register_protocol(protocol=PROTOCOL_NAME, description=None, command=None):
    """
    Register a URL protocol that launches this application.

    Returns:
        bool: True on success.
    """
    if sys.platform != "win32":
        logger.error("Protocol registration is only supported on Windows")
        return False
    import winreg

    description = description or f"{protocol} protocol"
    command = command or get_handler_command()
    logger.info(f"Registering protocol '{protocol}' with handler: {command}")
    try:
        with winreg.CreateKeyEx(winreg.HKEY_CLASSES_ROOT, protocol, 0, winreg.KEY_ALL_ACCESS) as key:
            winreg.SetValueEx(key, "", 0, winreg.REG_SZ, f"URL:{description}")
            winreg.SetValueEx(key, "URL Protocol", 0, winreg.REG_SZ, "")
        command_path = f"{protocol}\\shell\\open\\command"
        with winreg.CreateKeyEx(winreg.HKEY_CLASSES_ROOT, command_path, 0, winreg.KEY_ALL_ACCESS) as cmd_key:
            winreg.SetValueEx(cmd_key, "", 0, winreg.REG_SZ, command)
    except OSError as e:
        logger.error(f"Failed to register protocol '{protocol}': {e}")
        return False
    logger.info(f"Successfully registered protocol: {protocol}://")
    return True


def _delete_key_tree(winreg, root, path):
    with winreg.OpenKey(root, path, 0, winreg.KEY_ALL_ACCESS) as key:
        while True:
            try:
                child = winreg.EnumKey(key, 0)
            except OSError:
                break
            _delete_key_tree(winreg, root, f"{path}\\{child}")
    winreg.DeleteKey(root, path)


def unregister_protocol(protocol=PROTOCOL_NAME):
    """
    Remove a previously registered protocol.

    Returns:
        bool: True on success.
    """
    if sys.platform != "win32":
        logger.error("Protocol registration is only supported on Windows")
        return False
    import winreg

    logger.info(f"Unregistering protocol: {protocol}")
    try:
        # DeleteKey refuses keys that still have subkeys
        _delete_key_tree(winreg, winreg.HKEY_CLASSES_ROOT, protocol)
    except OSError as e:
        logger.error(f"Failed to delete protocol registry keys: {e}")
        return False
    logger.info(f"Successfully unregistered protocol: {protocol}://")
    return True
