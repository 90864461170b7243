"""
Tests for merging category folders.
"""

import pytest
from pypdf import PdfReader

from conftest import make_pdf
from zupfbuild.config import BuildConfig
from zupfbuild.errors import MergeError
from zupfbuild.merge import PypdfMerger, collect_pdfs, merge_categories


@pytest.fixture
def cfg(tmp_path):
    cfg = BuildConfig(output_dir=tmp_path / "out", abc_file_dir=tmp_path)
    cfg.create_directories(["klein", "gross", "leer"])
    return cfg


class RecordingMerger:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def merge(self, sources, dest):
        self.calls.append((list(sources), dest))
        if self.fail:
            raise RuntimeError("disk full")


class TestCollectPdfs:

    def test_recursive_lexical_order(self, tmp_path):
        (tmp_path / "sub").mkdir()
        make_pdf(tmp_path / "02_b.pdf")
        make_pdf(tmp_path / "01_a.PDF")
        make_pdf(tmp_path / "sub" / "00_c.pdf")
        (tmp_path / "notes.txt").write_text("x")

        names = [p.relative_to(tmp_path).as_posix() for p in collect_pdfs(tmp_path)]
        assert names == ["01_a.PDF", "02_b.pdf", "sub/00_c.pdf"]


class TestMergeCategories:
    """Tests for merge_categories."""

    def test_merges_each_category(self, cfg):
        make_pdf(cfg.category_dir("klein") / "01_a.pdf", pages=2)
        make_pdf(cfg.category_dir("klein") / "00_toc.pdf")
        make_pdf(cfg.category_dir("gross") / "01_a.pdf")

        merged = merge_categories(cfg, "MBT", ["klein", "gross"], PypdfMerger())

        assert merged == {
            "klein": cfg.print_dir / "MBT_klein.pdf",
            "gross": cfg.print_dir / "MBT_gross.pdf",
        }
        assert len(PdfReader(str(merged["klein"])).pages) == 3
        assert len(PdfReader(str(merged["gross"])).pages) == 1

    def test_sources_in_numbering_order(self, cfg):
        for name in ("02_b.pdf", "00_toc.pdf", "01_a.pdf"):
            make_pdf(cfg.category_dir("klein") / name)
        merger = RecordingMerger()

        merge_categories(cfg, "MBT", ["klein"], merger)

        sources, dest = merger.calls[0]
        assert [p.name for p in sources] == ["00_toc.pdf", "01_a.pdf", "02_b.pdf"]
        assert dest == cfg.print_dir / "MBT_klein.pdf"

    def test_empty_and_missing_folders_skipped(self, cfg):
        merger = RecordingMerger()
        merged = merge_categories(cfg, "MBT", ["leer", "fehlt"], merger)
        assert merged == {}
        assert merger.calls == []

    def test_merger_failure(self, cfg):
        make_pdf(cfg.category_dir("klein") / "01_a.pdf")
        with pytest.raises(MergeError, match="klein") as exc_info:
            merge_categories(cfg, "MBT", ["klein"], RecordingMerger(fail=True))
        assert exc_info.value.stage == "merge"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
