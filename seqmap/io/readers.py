"""
I/O Readers

Reads GenBank records, pre-decoded JSON records and restriction site tables.
"""

from __future__ import annotations
from typing import Any, Dict, List
import json
import logging
from pathlib import Path

import pandas as pd
from Bio import SeqIO
from Bio.Seq import UndefinedSequenceError
from Bio.SeqFeature import AfterPosition, BeforePosition

from ..types import GenBankRecord, PathLike, RawFeature, RawSegment, RestrictionSite

logger = logging.getLogger(__name__)

SKIPPED_QUALIFIERS = ('translation',)
SITE_COLUMNS = ['enzyme', 'position', 'cutIndexInRecognition', 'cutDistance', 'recognition']


class GenBankReader:
    """Reads GenBank flat files into decoded records"""

    @staticmethod
    def location_segments(location) -> List[RawSegment]:
        """
        Convert a Biopython location into raw segments

        Each part becomes [startToken, isReverse, endToken] with 1-based
        tokens; partial ends carry '<' / '>' markers and single-base parts
        omit the end token.

        Args:
            location: SimpleLocation or CompoundLocation

        Returns:
            List of raw segments in location order
        """
        segments: List[RawSegment] = []
        for part in location.parts:
            start = int(part.start)
            end = int(part.end)
            start_token = str(start + 1)
            if isinstance(part.start, BeforePosition):
                start_token = '<' + start_token
            reverse = part.strand == -1
            if end - start == 1 and not isinstance(part.end, AfterPosition):
                segments.append([start_token, reverse])
                continue
            end_token = str(end)
            if isinstance(part.end, AfterPosition):
                end_token = '>' + end_token
            segments.append([start_token, reverse, end_token])
        return segments

    @staticmethod
    def qualifiers(raw: Dict[str, Any]) -> Dict[str, str]:
        """First value of every qualifier, skipping bulky ones"""
        info: Dict[str, str] = {}
        for key, values in raw.items():
            if key in SKIPPED_QUALIFIERS:
                continue
            if isinstance(values, (list, tuple)):
                info[key] = str(values[0]) if values else ''
            else:
                info[key] = str(values)
        return info

    @staticmethod
    def load_record(genbank_file: PathLike) -> GenBankRecord:
        """
        Load a single-record GenBank file

        Args:
            genbank_file: Path to .gb / .gbk file

        Returns:
            Decoded record with locus, definition, origin and features
        """
        record = SeqIO.read(str(genbank_file), 'genbank')
        annotations = record.annotations

        try:
            origin = str(record.seq)
        except UndefinedSequenceError:
            logger.warning(f"{genbank_file}: record has no sequence data")
            origin = ''

        features: List[RawFeature] = []
        for feature in record.features:
            if feature.location is None:
                logger.warning(f"{genbank_file}: {feature.type} feature without location skipped")
                continue
            features.append({
                'type': feature.type,
                'location': GenBankReader.location_segments(feature.location),
                'information': GenBankReader.qualifiers(feature.qualifiers),
            })

        logger.info(f"Loaded {record.name}: {len(record)} bp, {len(features)} features")
        return {
            'locus': {
                'locusName': record.name,
                'sequenceLength': len(record),
                'moleculeType': str(annotations.get('molecule_type', '')),
                'topology': str(annotations.get('topology', 'linear')),
                'division': str(annotations.get('data_file_division', '')),
            },
            'definition': record.description,
            'origin': origin,
            'features': features,
        }


def read_genbank(genbank_file: PathLike) -> GenBankRecord:
    """
    Convenience function to read a GenBank file

    Args:
        genbank_file: Path to GenBank file

    Returns:
        Decoded record
    """
    return GenBankReader.load_record(genbank_file)


def read_record_json(json_file: PathLike) -> GenBankRecord:
    """
    Read a record already decoded to JSON

    Args:
        json_file: Path to JSON file with 'locus' and 'features'

    Returns:
        Decoded record

    Raises:
        ValueError: Required keys missing
    """
    with open(json_file, 'r') as f:
        record = json.load(f)
    missing = [key for key in ('locus', 'features') if key not in record]
    if missing:
        raise ValueError(f"{json_file}: missing keys {missing}")
    if 'sequenceLength' not in record['locus']:
        raise ValueError(f"{json_file}: locus has no sequenceLength")
    return record


class SiteReader:
    """Reads restriction site tables"""

    @staticmethod
    def load_sites(site_file: PathLike) -> List[RestrictionSite]:
        """
        Load restriction sites from a TSV file

        Expected columns (header required):
        enzyme  position  cutIndexInRecognition  cutDistance  recognition
        EcoRI   396       1                      4            GAATTC

        Only enzyme and position are required. Rows with a non-numeric
        position are dropped.

        Args:
            site_file: Path to TSV file

        Returns:
            List of restriction site dicts
        """
        if not Path(site_file).exists():
            raise FileNotFoundError(f"Restriction site file not found: {site_file}")

        sites = pd.read_csv(site_file, sep='\t', comment='#')
        for column in ('enzyme', 'position'):
            if column not in sites.columns:
                raise ValueError(f"{site_file}: missing required column '{column}'")

        defaults = {'cutIndexInRecognition': 0, 'cutDistance': 0, 'recognition': ''}
        for column, default in defaults.items():
            if column not in sites.columns:
                sites[column] = default

        for column in ('position', 'cutIndexInRecognition', 'cutDistance'):
            sites[column] = pd.to_numeric(sites[column], errors='coerce')
        n_before = len(sites)
        sites = sites.dropna(subset=['enzyme', 'position'])
        if len(sites) < n_before:
            logger.warning(f"Dropped {n_before - len(sites)} sites with missing enzyme or position")

        sites = sites.fillna({'cutIndexInRecognition': 0, 'cutDistance': 0, 'recognition': ''})
        records: List[RestrictionSite] = []
        for row in sites[SITE_COLUMNS].itertuples(index=False):
            records.append({
                'enzyme': str(row.enzyme),
                'position': int(row.position),
                'cutIndexInRecognition': int(row.cutIndexInRecognition),
                'cutDistance': int(row.cutDistance),
                'recognition': str(row.recognition),
            })
        logger.info(f"Loaded {len(records)} restriction sites")
        return records
