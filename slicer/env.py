#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""
Process environment for slicer.

Variables set in the environment take precedence over those read from the
file named by SLICER_ENV_FILE.
"""
import environ

ENVIRONMENT = environ.Env(
    DJANGO_DEBUG=(bool, False),
    SLICER_BATCH_SIZE=(int, 10000),
    SLICER_LOCK_TIMEOUT=(str, "5s"),
    SLICER_FORMAT_VERSION=(int, 3),
    SLICER_VIEW_BATCH_LIMIT=(int, 10000),
    LOG_LEVEL=(str, "INFO"),
)

ENV_FILE = ENVIRONMENT.get_value("SLICER_ENV_FILE", default="")
if ENV_FILE:
    environ.Env.read_env(ENV_FILE)
