"""
Band Classifier - split raw channel numbers by radio band.

The controller exposes one "current channel" column per radio
(bsnAPIfPhyChannelNumber) and no band tag. 802.11b/g channels are 1-14 and
802.11a channels start at 34, so the channel number alone decides the band.
"""

import logging
from enum import Enum
from typing import Iterable

from .records import AccessPointRecord

logger = logging.getLogger("Telemetry.Bands")

BAND_SPLIT_CHANNEL = 15


class Band(Enum):
    GHZ_2_4 = "2.4GHz"
    GHZ_5 = "5GHz"


def classify_channel(channel: int) -> Band:
    return Band.GHZ_2_4 if channel < BAND_SPLIT_CHANNEL else Band.GHZ_5


def classify_bands(records: Iterable[AccessPointRecord]) -> int:
    """
    Move pending channel observations into the band fields.

    Returns the number of observations classified.
    """
    classified = 0
    for record in records:
        if not record.pending_channels:
            continue
        for channel in record.pending_channels:
            if classify_channel(channel) is Band.GHZ_2_4:
                record.channel_band24 = channel
            else:
                record.channel_band5 = channel
            classified += 1
        record.pending_channels.clear()

    logger.debug(f"Classified {classified} channel observations")
    return classified
