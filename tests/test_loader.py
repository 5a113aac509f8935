"""Tests for BibTeX loading."""

from __future__ import annotations

from bibtex_validator import BibLoader, record_to_entry

SAMPLE_BIB = r"""
@string{neurips = "Advances in Neural Information Processing Systems"}

@inproceedings{vaswani2017attention,
  title = {Attention Is All You Need},
  author = {Vaswani, Ashish and Shazeer, Noam and others},
  booktitle = neurips,
  year = {2017},
  eprint = {1706.03762},
  archivePrefix = {arXiv}
}

@article{lecun2015deep,
  title = {Deep Learning},
  author = {LeCun, Yann and Bengio, Yoshua and Hinton, Geoffrey},
  journal = {Nature},
  year = {2015},
  doi = {10.1038/nature14539}
}

@software{tool,
  title = {A Tool},
  author = {Doe, Jane},
  year = {2021},
  howpublished = {\url{https://zenodo.org/records/1}}
}
"""


class TestRecordToEntry:
    """Tests for record_to_entry."""

    def test_fields(self):
        entry = record_to_entry(
            {"ID": "k", "ENTRYTYPE": "Article", "title": "T", "author": "A, B and C D", "year": "2020", "doi": "10.1/x"}
        )
        assert entry.key == "k"
        assert entry.entry_type == "article"
        assert entry.authors == ("A, B", "C D")
        assert entry.year == "2020"
        assert entry.doi == "10.1/x"
        assert entry.arxiv_id is None

    def test_arxiv_from_url(self):
        entry = record_to_entry({"ID": "k", "title": "T", "url": "https://arxiv.org/abs/2001.01234v2"})
        assert entry.arxiv_id == "2001.01234v2"

    def test_eprint_of_other_archive_ignored(self):
        entry = record_to_entry({"ID": "k", "title": "T", "eprint": "2001.01234", "archiveprefix": "HAL"})
        assert entry.arxiv_id is None

    def test_journal_mentioning_arxiv(self):
        entry = record_to_entry({"ID": "k", "title": "T", "journal": "arXiv preprint arXiv:2001.01234"})
        assert entry.arxiv_id == "2001.01234"

    def test_missing_fields(self):
        entry = record_to_entry({"ID": "k"})
        assert entry.title == ""
        assert entry.authors == ()
        assert entry.year is None
        assert entry.entry_type == "misc"


class TestBibLoader:
    """Tests for BibLoader."""

    def test_loads_in_file_order(self):
        entries = BibLoader().loads(SAMPLE_BIB)
        assert [e.key for e in entries] == ["vaswani2017attention", "lecun2015deep", "tool"]

    def test_arxiv_eprint(self):
        entries = BibLoader().loads(SAMPLE_BIB)
        assert entries[0].arxiv_id == "1706.03762"
        assert entries[0].authors[-1] == "others"

    def test_nonstandard_type_kept(self):
        entries = BibLoader().loads(SAMPLE_BIB)
        assert entries[2].entry_type == "software"

    def test_load_file(self, tmp_path):
        path = tmp_path / "refs.bib"
        path.write_text(SAMPLE_BIB, encoding="utf-8")
        entries = BibLoader().load_file(str(path))
        assert entries[1].doi == "10.1038/nature14539"

    def test_venue_from_journal_or_booktitle(self):
        entries = BibLoader().loads(SAMPLE_BIB)
        assert entries[0].venue == "Advances in Neural Information Processing Systems"
        assert entries[1].venue == "Nature"
        assert entries[2].venue is None
