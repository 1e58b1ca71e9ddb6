import os


def scratch_dir():
    """Directory for short-lived files holding cleartext or key material.

    Memory-backed storage is preferred. `None` means the default temporary
    directory.

    """
    if os.path.isdir("/dev/shm") and os.access("/dev/shm", os.W_OK):
        return "/dev/shm"
    return None
