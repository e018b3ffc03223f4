# SPDX-License-Identifier: Apache-2.0
"""Tests for CLI argument parsing and execution."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from pdf_helpers import OBJ_PATH, OBJ_TEXT, build_test_font, page_objects

from pdf_compositor.cli import build_catalog, build_config, main, parse_args, run

OPERATIONS = [
    {
        "type": "ADD_MASK",
        "id": "m1",
        "pageNumber": 1,
        "x": 10,
        "y": 10,
        "width": 100,
        "height": 20,
    },
    {
        "type": "ADD_TEXT",
        "id": "t1",
        "pageNumber": 1,
        "text": "abc",
        "x": 10,
        "y": 10,
        "width": 100,
        "height": 20,
        "style": {"fontId": "local-testsans-regular", "fontSize": 16},
    },
]


@pytest.fixture
def workspace(tmp_path: Path, blank_pdf: bytes) -> Path:
    """Directory with input.pdf, ops.json and fonts/."""
    (tmp_path / "input.pdf").write_bytes(blank_pdf)
    (tmp_path / "ops.json").write_text(json.dumps(OPERATIONS), encoding="utf-8")
    (tmp_path / "fonts").mkdir()
    (tmp_path / "fonts" / "TestSans.ttf").write_bytes(build_test_font())
    return tmp_path


class TestParseArgs:
    """Tests for parse_args function."""

    def test_basic_input(self) -> None:
        with patch.object(
            sys, "argv", ["edit-pdf", "in.pdf", "ops.json", "--raster-height", "1000"]
        ):
            args = parse_args()
        assert args.input == Path("in.pdf")
        assert args.operations == Path("ops.json")
        assert args.raster_height == 1000.0
        assert args.output is None
        assert args.font_dir == []
        assert args.image_errors == "skip"
        assert args.compress is False

    def test_raster_height_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["in.pdf", "ops.json"])

    def test_font_dir_repeatable(self) -> None:
        args = parse_args(
            ["in.pdf", "ops.json", "--raster-height", "10", "--font-dir", "a", "--font-dir", "b"]
        )
        assert args.font_dir == [Path("a"), Path("b")]

    def test_image_errors_choices(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["in.pdf", "ops.json", "--raster-height", "10", "--image-errors", "x"])


class TestBuildConfig:
    """Tests for build_config / build_catalog."""

    def test_defaults(self) -> None:
        config = build_config(parse_args(["in.pdf", "ops.json", "--raster-height", "10"]))
        assert config.baseline_ratio == 0.85
        assert config.use_font_metrics is False
        assert config.subset_fonts is True

    def test_options(self) -> None:
        args = parse_args(
            [
                "in.pdf",
                "ops.json",
                "--raster-height",
                "10",
                "--baseline-ratio",
                "0.8",
                "--use-font-metrics",
                "--image-errors",
                "abort",
                "--compress",
                "--no-subset",
            ]
        )
        config = build_config(args)
        assert config.baseline_ratio == 0.8
        assert config.use_font_metrics is True
        assert config.image_error_policy == "abort"
        assert config.compress is True
        assert config.subset_fonts is False

    def test_catalog_from_font_dirs(self, workspace: Path) -> None:
        catalog = build_catalog([workspace / "fonts"])
        assert "local-testsans-regular" in catalog


class TestRun:
    """Tests for run()."""

    @pytest.mark.asyncio
    async def test_success(self, workspace: Path) -> None:
        output = workspace / "out.pdf"
        args = parse_args(
            [
                str(workspace / "input.pdf"),
                str(workspace / "ops.json"),
                "--raster-height",
                "1000",
                "--font-dir",
                str(workspace / "fonts"),
                "-o",
                str(output),
            ]
        )

        assert await run(args) == 0
        types = [obj.type for obj in page_objects(output.read_bytes())]
        assert types == [OBJ_PATH, OBJ_TEXT]

    @pytest.mark.asyncio
    async def test_missing_input(self, workspace: Path) -> None:
        args = parse_args(
            [str(workspace / "nope.pdf"), str(workspace / "ops.json"), "--raster-height", "1000"]
        )
        assert await run(args) == 1

    @pytest.mark.asyncio
    async def test_invalid_operations(self, workspace: Path) -> None:
        (workspace / "ops.json").write_text('[{"type": "ADD_SHAPE"}]', encoding="utf-8")
        args = parse_args(
            [str(workspace / "input.pdf"), str(workspace / "ops.json"), "--raster-height", "1000"]
        )
        assert await run(args) == 1

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self, workspace: Path) -> None:
        (workspace / "input.pdf").write_bytes(b"corrupt")
        args = parse_args(
            [
                str(workspace / "input.pdf"),
                str(workspace / "ops.json"),
                "--raster-height",
                "1000",
                "-o",
                str(workspace / "out.pdf"),
            ]
        )
        assert await run(args) == 1

    @pytest.mark.asyncio
    async def test_non_positive_raster_height(self, workspace: Path) -> None:
        args = parse_args(
            [str(workspace / "input.pdf"), str(workspace / "ops.json"), "--raster-height", "0"]
        )
        assert await run(args) == 1

    def test_main_exit_code(self, workspace: Path) -> None:
        argv = [
            "edit-pdf",
            str(workspace / "input.pdf"),
            str(workspace / "ops.json"),
            "--raster-height",
            "1000",
            "-o",
            str(workspace / "main.pdf"),
        ]
        with patch.object(sys, "argv", argv), pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
        assert (workspace / "main.pdf").exists()
