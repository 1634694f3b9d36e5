from typing import Dict

# Control-channel center frequencies (MHz) -> channel number.
_FREQ_TO_CHANNEL: Dict[int, int] = {
    2412: 1, 2417: 2, 2422: 3, 2427: 4, 2432: 5, 2437: 6, 2442: 7,
    2447: 8, 2452: 9, 2457: 10, 2462: 11, 2467: 12, 2472: 13, 2484: 14,
    5180: 36, 5200: 40, 5220: 44, 5240: 48, 5260: 52, 5280: 56, 5300: 60, 5320: 64,
    5500: 100, 5520: 104, 5540: 108, 5560: 112, 5580: 116, 5600: 120,
    5620: 124, 5640: 128, 5660: 132, 5680: 136, 5700: 140, 5720: 144,
    5745: 149, 5765: 153, 5785: 157, 5805: 161, 5825: 165,
}

BAND_24_MIN_MHZ = 2412
BAND_24_MAX_MHZ = 2484
BAND_5_MIN_MHZ = 5180
BAND_5_MAX_MHZ = 5825

# 0 is never a valid Wi-Fi channel; it marks an unknown frequency.
UNKNOWN_CHANNEL = 0


def freq_to_channel(freq_mhz: int) -> int:
    try:
        freq = int(freq_mhz)
    except (TypeError, ValueError):
        return UNKNOWN_CHANNEL

    chan = _FREQ_TO_CHANNEL.get(freq)
    if chan is not None:
        return chan
    if BAND_24_MIN_MHZ <= freq <= BAND_24_MAX_MHZ:
        return (freq - 2407) // 5
    if BAND_5_MIN_MHZ <= freq <= BAND_5_MAX_MHZ:
        return (freq - 5000) // 5
    return UNKNOWN_CHANNEL


def band_from_freq_mhz(freq_mhz: int) -> str:
    if BAND_24_MIN_MHZ <= freq_mhz <= BAND_24_MAX_MHZ:
        return "2.4ghz"
    if BAND_5_MIN_MHZ <= freq_mhz <= BAND_5_MAX_MHZ:
        return "5ghz"
    return "unknown"
