# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

"""Tag-triggered deploy and teardown of ephemeral k3s environments."""

__version__ = "0.1.0"
