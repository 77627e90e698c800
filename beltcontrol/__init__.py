"""Control logic for a two-belt puk sorting line: state machines, height decoding, calibration, devices and serial link."""

__version__ = "0.1.0"