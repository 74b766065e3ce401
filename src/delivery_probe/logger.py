# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the delivery probe.

Modules only ask for named loggers here. Handlers, level and format are
configured once by the entry point (see ``delivery_probe.cli``) through
``logging.basicConfig()`` to avoid duplicate handlers.

Example:
    Typical usage in a module::

        from delivery_probe.logger import get_logger

        logger = get_logger("Poller")
        logger.info("Poll cycle completed")
"""

import logging


def get_logger(name: str = "DeliveryProbe") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "DeliveryProbe".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)
