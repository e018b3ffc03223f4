# SPDX-License-Identifier: Apache-2.0
"""Progress callback protocol for the export pipeline.

Stages reported, in order: ``load``, ``fonts``, ``images``, ``compose``
(once per page) and ``save``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Progress callback protocol."""

    def __call__(
        self,
        stage: str,
        current: int,
        total: int,
        message: str = "",
    ) -> None: ...
