"""I/O utilities for SeqMap"""

from .readers import GenBankReader, SiteReader, read_genbank, read_record_json
from .writers import (
    BoundsWriter,
    LayoutWriter,
    SummaryWriter,
    layout_to_dict,
    write_layout,
    write_summary,
)

__all__ = [
    'GenBankReader', 'read_genbank', 'read_record_json',
    'SiteReader',
    'LayoutWriter', 'write_layout', 'layout_to_dict',
    'BoundsWriter',
    'SummaryWriter', 'write_summary']
