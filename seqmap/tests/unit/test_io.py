"""
Unit tests for readers and writers
"""
import json

import pandas as pd
import pytest

from seqmap.io import (
    BoundsWriter,
    GenBankReader,
    LayoutWriter,
    SiteReader,
    read_genbank,
    read_record_json,
    write_summary,
)
from seqmap.layout import Feature, FeatureBoundsResolver, LabelPlacer, LayoutEngine


pytestmark = pytest.mark.unit


class TestGenBankReader:
    """GenBank flat files -> decoded records"""

    @pytest.fixture(scope="class")
    def record(self, genbank_file):
        return read_genbank(genbank_file)

    def test_locus(self, record):
        """Locus fields come from the LOCUS line"""
        locus = record['locus']
        assert locus['locusName'] == 'TESTPLAS'
        assert locus['sequenceLength'] == 120
        assert locus['topology'] == 'circular'
        assert locus['moleculeType'] == 'DNA'

    def test_all_features_kept(self, record):
        """source is read; hiding it is a layout decision"""
        types = [f['type'] for f in record['features']]
        assert types == ['source', 'gene', 'CDS', 'promoter', 'CDS', 'rep_origin', 'misc_feature', 'CDS']

    def test_plain_and_reverse_segments(self, record):
        """Simple and complement locations give [start, reverse, end]"""
        assert record['features'][1]['location'] == [['5', False, '40']]
        assert record['features'][4]['location'] == [['50', True, '90']]

    def test_partial_marker(self, record):
        """Partial starts keep the '<' marker"""
        assert record['features'][3]['location'] == [['<45', False, '48']]

    def test_single_base(self, record):
        """Single-base locations omit the end token"""
        assert record['features'][6]['location'] == [['95', False]]

    def test_join(self, record):
        """join() parts become separate segments in order"""
        assert record['features'][7]['location'] == [['100', False, '120'], ['1', False, '3']]

    def test_qualifiers(self, record):
        """First qualifier value is kept, translation is skipped"""
        info = record['features'][2]['information']
        assert info['gene'] == 'ampR'
        assert info['product'] == 'beta-lactamase'
        assert 'translation' not in info

    def test_origin(self, record):
        """Sequence text is kept"""
        assert len(record['origin']) == 120

    def test_location_segments_resolve(self, record):
        """Reader output is accepted by the bounds resolver"""
        resolver = FeatureBoundsResolver(120, 'circular')
        features = [Feature.from_record(i, f) for i, f in enumerate(record['features'])]
        resolved = resolver.resolve_all(features)
        assert len(resolved) == 8
        assert resolved[7].crosses_origin
        assert (resolved[3].start, resolved[3].end) == (44, 47)


class TestFeatureFromRecord:
    """Decoded feature dicts -> Feature"""

    def test_null_qualifier_skipped(self):
        """A null qualifier does not hide the next one in label priority"""
        feature = Feature.from_record(0, {'type': 'CDS', 'location': [["1", False, "9"]],
                                          'information': {'gene': None, 'product': 'rep'}})
        assert feature.info == {'product': 'rep'}
        assert LabelPlacer().label_text(feature) == 'rep'

    def test_unreadable_segments_kept_raw(self):
        """Non-list segments are passed through for the resolver to drop"""
        feature = Feature.from_record(1, {'type': 'CDS', 'location': [["301", False, "401"], None, 7]})
        assert feature.location == (("301", False, "401"), None, 7)

    def test_non_dict_information(self):
        """Information that is not a mapping is ignored"""
        feature = Feature.from_record(2, {'type': 'gene', 'location': [], 'information': 'lacZ'})
        assert feature.info == {}

    def test_missing_location(self):
        feature = Feature.from_record(3, {'type': 'gene', 'location': None})
        assert feature.location == ()


class TestRecordJson:
    """Pre-decoded JSON records"""

    def test_read(self, record_json_file):
        record = read_record_json(record_json_file)
        assert record['locus']['sequenceLength'] == 1000
        assert len(record['features']) == 6

    def test_missing_keys(self, tmp_path):
        """Records without features are rejected"""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({'locus': {'sequenceLength': 10}}))
        with pytest.raises(ValueError, match="missing keys"):
            read_record_json(path)

    def test_missing_length(self, tmp_path):
        """Locus must carry the sequence length"""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({'locus': {}, 'features': []}))
        with pytest.raises(ValueError, match="sequenceLength"):
            read_record_json(path)


class TestSiteReader:
    """Restriction site tables"""

    def test_bad_rows_dropped(self, sites_file):
        """Rows with non-numeric positions are skipped"""
        sites = SiteReader.load_sites(sites_file)
        assert [s['enzyme'] for s in sites] == ['BamHI', 'PstI', 'EcoRV']
        assert sites[1] == {'enzyme': 'PstI', 'position': 76, 'cutIndexInRecognition': 5,
                            'cutDistance': -4, 'recognition': 'CTGCAG'}

    def test_minimal_columns(self, tmp_path):
        """Only enzyme and position are required"""
        path = tmp_path / "sites.tsv"
        path.write_text("enzyme\tposition\nEcoRI\t396\n")
        sites = SiteReader.load_sites(path)
        assert sites == [{'enzyme': 'EcoRI', 'position': 396, 'cutIndexInRecognition': 0,
                          'cutDistance': 0, 'recognition': ''}]

    def test_missing_column(self, tmp_path):
        path = tmp_path / "sites.tsv"
        path.write_text("enzyme\tcut\nEcoRI\t1\n")
        with pytest.raises(ValueError, match="position"):
            SiteReader.load_sites(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SiteReader.load_sites(tmp_path / "nope.tsv")


class TestWriters:
    """Tables, JSON descriptors and summaries"""

    @pytest.fixture
    def result(self, linear_record):
        return LayoutEngine().layout_record(linear_record, width=2000.0, height=600.0)

    def test_layout_table(self, result, tmp_path):
        """One row per placed feature"""
        path = tmp_path / "out" / "layout.tsv"
        LayoutWriter.write_table(result, path)
        table = pd.read_csv(path, sep='\t')
        assert len(table) == result.n_features
        assert set(table['feature_id']) == set(result.row_assignment)

    def test_layout_json(self, result, tmp_path):
        """Shapes are tagged with their kind"""
        path = tmp_path / "layout.json"
        LayoutWriter.write_json(result, path)
        data = json.loads(path.read_text())
        assert data['mode'] == 'linear'
        kinds = {s['kind'] for f in data['features'] for s in f['shapes']}
        assert kinds <= {'rect', 'polygon', 'line'}
        assert 'polygon' in kinds

    def test_bounds_table(self, tmp_path):
        """Segments are written 1-based with strand"""
        resolver = FeatureBoundsResolver(1000)
        resolved = resolver.resolve_all([Feature(0, 'CDS', (("101", True, "201"),))])
        frame = BoundsWriter.to_frame(resolved)
        assert frame.loc[0, 'segments'] == '101..201(-)'
        BoundsWriter.write(resolved, tmp_path / "bounds.tsv")
        assert (tmp_path / "bounds.tsv").exists()

    def test_summary(self, result, tmp_path):
        """Summary lists diagnostics"""
        path = tmp_path / "summary.txt"
        write_summary(result, path, {'input': 'test_record.json'})
        text = path.read_text()
        assert "SeqMap Layout Summary" in text
        assert "[malformed_input]" in text
