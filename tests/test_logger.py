import logging

from borg_wrapper.logger import configure_logging


def test_configure_logging_replaces_its_own_handler():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        configure_logging("debug")
        configure_logging("WARNING")
        ours = [h for h in root.handlers if getattr(h, "_borg_wrapper", False)]
        assert len(ours) == 1
        assert root.level == logging.WARNING

        configure_logging("chatty")
        assert root.level == logging.INFO
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
