"""
Referral system configuration.

Contains constants and payout tables for the referral system.
"""

from decimal import Decimal

from app.models.enums import ReferralLevel

# 3-generation program: A (direct), B, C
REFERRAL_DEPTH = 3

# Invite commission: fixed payout per level, keyed by the purchased tier
INVITE_COMMISSION_TABLE: dict[str, dict[ReferralLevel, Decimal]] = {
    "P1": {
        ReferralLevel.A_LEVEL: Decimal("312"),
        ReferralLevel.B_LEVEL: Decimal("117"),
        ReferralLevel.C_LEVEL: Decimal("39"),
    },
    "P2": {
        ReferralLevel.A_LEVEL: Decimal("1440"),
        ReferralLevel.B_LEVEL: Decimal("540"),
        ReferralLevel.C_LEVEL: Decimal("180"),
    },
    "P3": {
        ReferralLevel.A_LEVEL: Decimal("4160"),
        ReferralLevel.B_LEVEL: Decimal("1560"),
        ReferralLevel.C_LEVEL: Decimal("520"),
    },
    "P4": {
        ReferralLevel.A_LEVEL: Decimal("9600"),
        ReferralLevel.B_LEVEL: Decimal("3600"),
        ReferralLevel.C_LEVEL: Decimal("1200"),
    },
    "P5": {
        ReferralLevel.A_LEVEL: Decimal("20000"),
        ReferralLevel.B_LEVEL: Decimal("7500"),
        ReferralLevel.C_LEVEL: Decimal("2500"),
    },
    "P6": {
        ReferralLevel.A_LEVEL: Decimal("44000"),
        ReferralLevel.B_LEVEL: Decimal("16500"),
        ReferralLevel.C_LEVEL: Decimal("5500"),
    },
    "P7": {
        ReferralLevel.A_LEVEL: Decimal("88000"),
        ReferralLevel.B_LEVEL: Decimal("33000"),
        ReferralLevel.C_LEVEL: Decimal("11000"),
    },
    "P8": {
        ReferralLevel.A_LEVEL: Decimal("176000"),
        ReferralLevel.B_LEVEL: Decimal("66000"),
        ReferralLevel.C_LEVEL: Decimal("22000"),
    },
    "P9": {
        ReferralLevel.A_LEVEL: Decimal("320000"),
        ReferralLevel.B_LEVEL: Decimal("120000"),
        ReferralLevel.C_LEVEL: Decimal("40000"),
    },
    "P10": {
        ReferralLevel.A_LEVEL: Decimal("560000"),
        ReferralLevel.B_LEVEL: Decimal("210000"),
        ReferralLevel.C_LEVEL: Decimal("70000"),
    },
}

# Free tier, never pays invite commission
INTERN_TIER = "Intern"

# Task (management) commission: share of the subordinate's task income
TASK_COMMISSION_RATES: dict[ReferralLevel, Decimal] = {
    ReferralLevel.A_LEVEL: Decimal("0.06"),  # 6%
    ReferralLevel.B_LEVEL: Decimal("0.03"),  # 3%
    ReferralLevel.C_LEVEL: Decimal("0.01"),  # 1%
}

# Invite commission is one-time per referred user
INVITE_EVENT_KEY = "qualification"
