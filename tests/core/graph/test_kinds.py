"""Tests for the wiring compatibility matrix and AC service voltages."""

import pytest

from offgridsim.core.graph import Polarity, ServiceVoltage, compatible


@pytest.mark.parametrize(
    "a, b",
    [
        (Polarity.POSITIVE, Polarity.PV_POSITIVE),
        (Polarity.PV_NEGATIVE, Polarity.NEGATIVE),
        (Polarity.AC, Polarity.LOAD),
        (Polarity.LOAD, Polarity.LOAD),
        (Polarity.PARALLEL, Polarity.AC),
        (Polarity.SMART_BATTERY, Polarity.SMART_BATTERY),
        (Polarity.PIPE, Polarity.PIPE),
    ],
)
def test_compatible_pairs(a, b):
    # Act & Assert
    assert compatible(a, b)
    assert compatible(b, a)


@pytest.mark.parametrize(
    "a, b",
    [
        (Polarity.POSITIVE, Polarity.AC),
        (Polarity.AC, Polarity.PIPE),
        (Polarity.PARALLEL, Polarity.LOAD),
        (Polarity.SMART_BATTERY, Polarity.POSITIVE),
        (Polarity.PIPE, Polarity.LOAD),
    ],
)
def test_incompatible_pairs(a, b):
    # Act & Assert
    assert not compatible(a, b)
    assert not compatible(b, a)


def test_compatibility_is_symmetric_for_every_pair():
    # Arrange & Act
    asymmetric = [(a, b) for a in Polarity for b in Polarity if compatible(a, b) != compatible(b, a)]

    # Assert
    assert asymmetric == []


def test_service_voltage_acceptance():
    # Act & Assert
    assert ServiceVoltage.V120.accepts(120)
    assert not ServiceVoltage.V120.accepts(240)
    assert ServiceVoltage.V240.accepts(240)
    assert not ServiceVoltage.V240.accepts(120)
    assert ServiceVoltage.SPLIT.accepts(120) and ServiceVoltage.SPLIT.accepts(240)


def test_service_voltage_nominal_volts():
    # Act & Assert
    assert ServiceVoltage.from_volts(230) is ServiceVoltage.V240
    assert ServiceVoltage.V120.nominal_volts == 120.0
    assert ServiceVoltage.SPLIT.nominal_volts == 240.0
