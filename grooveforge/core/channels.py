"""
The fixed 16-channel template and the role each channel is generated with.
"""
from __future__ import annotations

from enum import Enum


class Channel(str, Enum):
    KICK = "ch1_kick"
    SUB = "ch2_sub"
    MID_BASS = "ch3_midBass"
    LEAD_A = "ch4_leadA"
    LEAD_B = "ch5_leadB"
    ARP_A = "ch6_arpA"
    ARP_B = "ch7_arpB"
    SNARE = "ch8_snare"
    CLAP = "ch9_clap"
    PERC_LOOP = "ch10_percLoop"
    PERC_TRIBAL = "ch11_percTribal"
    HH_CLOSED = "ch12_hhClosed"
    HH_OPEN = "ch13_hhOpen"
    ACID = "ch14_acid"
    PAD = "ch15_pad"
    SYNTH = "ch16_synth"


class Role(str, Enum):
    """How a channel's notes are produced."""

    KICK = "kick"
    BASS = "bass"
    LEAD = "lead"
    ARP = "arp"
    ACID = "acid"
    PAD = "pad"
    FX = "fx"
    PERC = "perc"


ALL_CHANNELS: tuple[Channel, ...] = tuple(Channel)

CHANNEL_ROLES: dict[Channel, Role] = {
    Channel.KICK: Role.KICK,
    Channel.SUB: Role.BASS,
    Channel.MID_BASS: Role.BASS,
    Channel.LEAD_A: Role.LEAD,
    Channel.LEAD_B: Role.LEAD,
    Channel.ARP_A: Role.ARP,
    Channel.ARP_B: Role.ARP,
    Channel.SNARE: Role.PERC,
    Channel.CLAP: Role.PERC,
    Channel.PERC_LOOP: Role.PERC,
    Channel.PERC_TRIBAL: Role.PERC,
    Channel.HH_CLOSED: Role.PERC,
    Channel.HH_OPEN: Role.PERC,
    Channel.ACID: Role.ACID,
    Channel.PAD: Role.PAD,
    Channel.SYNTH: Role.FX,
}

# Kept perfectly on the grid: never humanized, drift is a structural fault.
FOUNDATION_CHANNELS: frozenset[Channel] = frozenset({
    Channel.KICK, Channel.SUB, Channel.MID_BASS, Channel.HH_CLOSED,
})

# Pitched channels that are scale-aligned and harmonically scored.
MELODIC_CHANNELS: frozenset[Channel] = frozenset({
    Channel.SUB, Channel.MID_BASS, Channel.LEAD_A, Channel.LEAD_B,
    Channel.ARP_A, Channel.ARP_B, Channel.ACID, Channel.PAD, Channel.SYNTH,
})

# A missing one of these (when in scope) fails the groove outright.
REQUIRED_FOUNDATION: tuple[Channel, ...] = (Channel.KICK, Channel.SUB)

LEAD_CHANNELS: frozenset[Channel] = frozenset({Channel.LEAD_A, Channel.LEAD_B})

# Channels that carry the melodic hook; the peak of sparse genres wants one.
DRIVER_CHANNELS: frozenset[Channel] = frozenset({
    Channel.LEAD_A, Channel.LEAD_B, Channel.ACID, Channel.ARP_A, Channel.ARP_B,
})

# GM-style drum note names (C2 = 36 on the (octave + 1) * 12 naming).
DRUM_NOTES: dict[Channel, str] = {
    Channel.KICK: "C2",
    Channel.SNARE: "D2",
    Channel.CLAP: "D#2",
    Channel.HH_CLOSED: "F#2",
    Channel.HH_OPEN: "A#2",
    Channel.PERC_LOOP: "G#3",
    Channel.PERC_TRIBAL: "A2",
}

# Octave each pitched role is voiced in.
ROLE_OCTAVES: dict[Channel, int] = {
    Channel.SUB: 1,
    Channel.MID_BASS: 2,
    Channel.LEAD_A: 4,
    Channel.LEAD_B: 4,
    Channel.ARP_A: 4,
    Channel.ARP_B: 5,
    Channel.ACID: 3,
    Channel.PAD: 3,
    Channel.SYNTH: 5,
}


def parse_channel(value: str | Channel) -> Channel:
    """Accept either the wire id (``"ch1_kick"``) or the enum member name (``"KICK"``)."""
    if isinstance(value, Channel):
        return value
    try:
        return Channel(value)
    except ValueError:
        try:
            return Channel[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown channel: {value!r}") from None
