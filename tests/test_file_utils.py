"""
Stored file reference normalisation.
"""
import pytest

from core.file_utils import normalize_storage_path


@pytest.mark.parametrize("file_url, expected", [
    ("https://abc.supabase.co/storage/v1/object/public/notes/al/maths/limits.pdf", "al/maths/limits.pdf"),
    ("https://abc.supabase.co/storage/v1/object/sign/notes/al/maths/limits.pdf?token=xyz", "al/maths/limits.pdf"),
    ("https://abc.supabase.co/storage/v1/object/authenticated/notes/ol/science.pdf", "ol/science.pdf"),
    ("notes/al/maths/limits.pdf", "al/maths/limits.pdf"),
    ("/notes/al/maths/limits.pdf", "al/maths/limits.pdf"),
    ("al/maths/limits.pdf", "al/maths/limits.pdf"),
    ("al/maths/limits.pdf?download=1", "al/maths/limits.pdf"),
    ("al/maths/past%20paper.pdf", "al/maths/past paper.pdf"),
])
def test_reduces_references_to_bucket_relative_paths(file_url, expected):
    assert normalize_storage_path(file_url) == expected


@pytest.mark.parametrize("file_url", [None, "", "   "])
def test_empty_references(file_url):
    assert normalize_storage_path(file_url) is None


def test_respects_configured_bucket():
    assert normalize_storage_path("papers/2024/p1.pdf", bucket="papers") == "2024/p1.pdf"
    assert normalize_storage_path("notes/2024/p1.pdf", bucket="papers") == "notes/2024/p1.pdf"
