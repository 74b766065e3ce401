# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
import logging

from delivery_probe.logger import get_logger


def test_get_logger_reuses_existing_logger():
    logger = get_logger("TestLogger")
    handler_count = len(logger.handlers)

    same_logger = get_logger("TestLogger")
    assert logger is same_logger
    assert len(same_logger.handlers) == handler_count
    assert isinstance(logger.level, int)


def test_default_logger_name():
    assert get_logger().name == "DeliveryProbe"


def test_modules_add_no_handlers():
    from delivery_probe import config_loader, maintenance  # noqa: F401

    assert logging.getLogger("Maintenance").handlers == []
    assert logging.getLogger("ConfigLoader").handlers == []
