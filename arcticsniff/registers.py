"""Register map of the heat pump's Modbus interface and value decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass

# Holding registers (R/W): controller -> heat pump
REG_UNIT_ON_OFF = 2000
REG_WORKING_MODE = 2001
REG_COOLING_SETPOINT = 2002
REG_HEATING_SETPOINT = 2003
REG_HOT_WATER_SETPOINT = 2004
REG_COOLING_DELTA_T = 2005
REG_HEATING_DELTA_T = 2006
REG_HOT_WATER_DELTA_T = 2007
REG_FAN_COIL_HEATING_DT = 2008
REG_P1_EEV_OPENING = 2009
REG_P5_STERILIZE_TIME = 2013
REG_P13_MAX_TEMP = 2021
REG_P23_COOL_AUTO_TEMP = 2031
REG_P24_HEAT_AUTO_TEMP = 2032
REG_P28_MODE_SW_DELAY = 2036
REG_P29_DEFROST_CYCLE = 2037
REG_P30_DEFROST_ENTER = 2038
REG_P31_DEFROST_EXTEND = 2039
REG_P32_DEFROST_DIFF = 2040
REG_P33_DEFROST_EXT_TIME = 2041
REG_P34_MAX_DEFROST_TIME = 2042
REG_P35_DEFROST_EXIT = 2043
REG_P36_WATER_RETURN_T = 2044
REG_P37_WATER_RETURN_TM = 2045
REG_P38_LOW_AMB_PROTECT = 2046
REG_P39_FREQ_REDUCTION = 2047
REG_P40_COOL_LOW_AMB = 2048
REG_P41_EEV_SH_MODE = 2049
REG_P42_TARGET_SUPERHEAT = 2050
REG_P43_3WAY_VALVE_TIME = 2051
REG_P44_PUMP_TARGET_MODE = 2052
REG_P45_PUMP_INTERVAL = 2053
REG_P46_PUMP_LOW_AMB = 2054
REG_P47_WATERWAY_CLEAN = 2055
REG_FREQ_CTRL_ENABLE = 2056
REG_FREQ_CTRL_SETTING = 2057

HOLDING_START = 2000
HOLDING_COUNT = 58

# Input registers (read-only): heat pump -> controller
REG_WATER_TANK_TEMP = 2100
REG_OUTLET_WATER_TEMP = 2102
REG_INLET_WATER_TEMP = 2103
REG_DISCHARGE_TEMP = 2104
REG_SUCTION_TEMP = 2105
REG_EVI_SUCTION_TEMP = 2106
REG_OUTDOOR_COIL_TEMP = 2107
REG_INDOOR_COIL_TEMP = 2108
REG_INDOOR_AMBIENT_TEMP = 2109
REG_OUTDOOR_AMBIENT_TEMP = 2110
REG_HP_SAT_TEMP = 2111
REG_LP_SAT_TEMP = 2112
REG_EVI_LP_SAT_TEMP = 2113
REG_IPM_TEMP = 2114
REG_BRINE_INLET_TEMP = 2115
REG_BRINE_OUTLET_TEMP = 2116

REG_COMPRESSOR_FREQ = 2118
REG_FAN_SPEED = 2119
REG_AC_VOLTAGE = 2120
REG_AC_CURRENT = 2121
REG_DC_VOLTAGE = 2122
REG_COMP_PHASE_CURRENT = 2123
REG_PRIMARY_EEV = 2124
REG_SECONDARY_EEV = 2125
REG_HIGH_PRESSURE = 2126
REG_LOW_PRESSURE = 2127
REG_EE_CODING = 2128

REG_STATUS_1 = 2133
REG_ERROR_CODE_1 = 2134
REG_STATUS_2 = 2135
REG_STATUS_3 = 2136
REG_ERROR_CODE_2 = 2137
REG_ERROR_CODE_3 = 2138

INPUT_START = 2100
INPUT_COUNT = 39


@dataclass(frozen=True)
class RegisterInfo:
    """Metadata describing how to present one register."""

    name: str
    unit: str | None = None
    scale: float = 1.0
    is_signed: bool = False


_C = "°C"

_REGISTERS: dict[int, RegisterInfo] = {
    # Holding registers
    2000: RegisterInfo("Unit ON/OFF"),
    2001: RegisterInfo("Working Mode"),
    2002: RegisterInfo("Cooling Setpoint", _C),
    2003: RegisterInfo("Heating Setpoint", _C),
    2004: RegisterInfo("Hot Water Setpoint", _C),
    2005: RegisterInfo("Cooling ΔT", _C),
    2006: RegisterInfo("Heating ΔT", _C),
    2007: RegisterInfo("Hot Water ΔT", _C),
    2008: RegisterInfo("Fan Coil Heating ΔT", _C),
    2009: RegisterInfo("P1: EEV Opening", "steps"),
    2013: RegisterInfo("P5: Sterilize Time", "min"),
    2021: RegisterInfo("P13: Max Temp Setting", _C),
    2031: RegisterInfo("P23: Cooling Auto Temp", _C),
    2032: RegisterInfo("P24: Heating Auto Temp", _C),
    2036: RegisterInfo("P28: Mode Switch Delay", "min"),
    2037: RegisterInfo("P29: Defrost Cycle", "min"),
    2038: RegisterInfo("P30: Defrost Enter", _C, is_signed=True),
    2039: RegisterInfo("P31: Defrost Extend", _C, is_signed=True),
    2040: RegisterInfo("P32: Defrost Temp Diff", _C),
    2041: RegisterInfo("P33: Defrost Ext Time", "min"),
    2042: RegisterInfo("P34: Max Defrost Time", "min"),
    2043: RegisterInfo("P35: Defrost Exit Temp", _C),
    2044: RegisterInfo("P36: Water Return Temp", _C),
    2045: RegisterInfo("P37: Water Return Time", "min"),
    2046: RegisterInfo("P38: Low Ambient Prot", _C, is_signed=True),
    2047: RegisterInfo("P39: Freq Reduction", _C),
    2048: RegisterInfo("P40: Cool Low Ambient", _C, is_signed=True),
    2049: RegisterInfo("P41: EEV Superheat Mode"),
    2050: RegisterInfo("P42: Target Superheat", _C),
    2051: RegisterInfo("P43: 3-Way Valve Time", "sec"),
    2052: RegisterInfo("P44: Pump Target Mode"),
    2053: RegisterInfo("P45: Pump Interval", "min"),
    2054: RegisterInfo("P46: Pump Low Ambient", _C, is_signed=True),
    2055: RegisterInfo("P47: Waterway Cleaning"),
    2056: RegisterInfo("Freq Control Enable"),
    2057: RegisterInfo("Freq Control Setting", "Hz"),
    # Input registers
    2100: RegisterInfo("Water Tank Temp", _C, is_signed=True),
    2102: RegisterInfo("Outlet Water Temp", _C, is_signed=True),
    2103: RegisterInfo("Inlet Water Temp", _C, is_signed=True),
    2104: RegisterInfo("Discharge Temp", _C, is_signed=True),
    2105: RegisterInfo("Suction Temp", _C, is_signed=True),
    2106: RegisterInfo("EVI Suction Temp", _C, is_signed=True),
    2107: RegisterInfo("Outdoor Coil Temp", _C, is_signed=True),
    2108: RegisterInfo("Indoor Coil Temp", _C, is_signed=True),
    2109: RegisterInfo("Indoor Ambient Temp", _C, is_signed=True),
    2110: RegisterInfo("Outdoor Ambient Temp", _C, is_signed=True),
    2111: RegisterInfo("HP Saturation Temp", _C, is_signed=True),
    2112: RegisterInfo("LP Saturation Temp", _C, is_signed=True),
    2113: RegisterInfo("EVI LP Sat Temp", _C, is_signed=True),
    2114: RegisterInfo("IPM Temp", _C, is_signed=True),
    2115: RegisterInfo("Brine Inlet Temp", _C, is_signed=True),
    2116: RegisterInfo("Brine Outlet Temp", _C, is_signed=True),
    2118: RegisterInfo("Compressor Freq", "Hz"),
    2119: RegisterInfo("Fan Speed", "RPM"),
    2120: RegisterInfo("AC Voltage", "V"),
    2121: RegisterInfo("AC Current", "A", 0.1),
    2122: RegisterInfo("DC Voltage", "V", 0.1),
    2123: RegisterInfo("Comp Phase Current", "A", 0.1),
    2124: RegisterInfo("Primary EEV", "steps"),
    2125: RegisterInfo("Secondary EEV", "steps"),
    2126: RegisterInfo("High Pressure", "MPa", 0.01),
    2127: RegisterInfo("Low Pressure", "MPa", 0.01),
    2128: RegisterInfo("EE Coding"),
    2133: RegisterInfo("Status 1"),
    2134: RegisterInfo("Error Code 1"),
    2135: RegisterInfo("Status 2"),
    2136: RegisterInfo("Status 3"),
    2137: RegisterInfo("Error Code 2"),
    2138: RegisterInfo("Error Code 3"),
}

_WORKING_MODES = {
    0: "Cooling",
    1: "Floor Heating",
    2: "Fan Coil Heating",
    5: "Hot Water",
    6: "Auto",
}
_EEV_MODES = {0: "Superheat Adj", 1: "Fixed-Point Adj"}
_PUMP_MODES = {0: "Per P45 Interval", 1: "OFF", 2: "Always ON"}
_WATERWAY_CLEAN = {0: "OFF", 1: "Pump", 2: "Pump+3WV1", 3: "Pump+3WV1+3WV2"}

_ENUM_TABLES: dict[int, dict[int, str]] = {
    REG_WORKING_MODE: _WORKING_MODES,
    REG_P41_EEV_SH_MODE: _EEV_MODES,
    REG_P44_PUMP_TARGET_MODE: _PUMP_MODES,
    REG_P47_WATERWAY_CLEAN: _WATERWAY_CLEAN,
}
_ON_OFF_REGISTERS = frozenset({REG_UNIT_ON_OFF, REG_FREQ_CTRL_ENABLE})

_BITMAPS: dict[int, tuple[tuple[int, str], ...]] = {
    REG_STATUS_1: (
        (0, "FreqUpperLimit"),
        (1, "FreqLowerLimit"),
    ),
    REG_ERROR_CODE_1: (
        (0, "BrineInletSensErr"),
        (1, "BrineOutletSensErr"),
        (2, "BrineFlowProtect"),
        (3, "E20:TankTempSensErr"),
    ),
    REG_STATUS_2: (
        (0, "UnitON"),
        (1, "Compressor"),
        (2, "FanHigh"),
        (3, "FanMed"),
        (4, "FanLow"),
        (5, "WaterPump"),
        (6, "4WayValve"),
        (7, "BackupHeater"),
        (8, "WaterFlowSW"),
        (9, "HighPressSW"),
        (10, "LowPressSW"),
        (11, "EmergencySW"),
        (12, "ModeSwitch"),
        (13, "3WayV1"),
        (14, "3WayV2"),
        (15, "BrineFlow"),
    ),
    REG_STATUS_3: (
        (0, "SolenoidValve"),
        (1, "UnloadingValve"),
        (2, "OilReturnValve"),
        (3, "BrineWaterPump"),
        (4, "BrineAntifreeze"),
        (5, "Defrosting"),
        (6, "RefrigRecovery"),
        (7, "OilReturn"),
        (8, "WiredCtrlConn"),
        (9, "EnergySaving"),
        (10, "Antifreeze1"),
        (11, "Antifreeze2"),
        (12, "Sterilization"),
        (13, "SecondaryPump"),
        (14, "RemoteOnOff"),
    ),
    REG_ERROR_CODE_2: (
        (0, "E27:IndoorEE"),
        (1, "E28:OutdoorEE"),
        (2, "E19:InletTempSens"),
        (3, "E18:OutletTempSens"),
        (4, "E13:IndoorCoilSens"),
        (5, "E05:OutdoorCoilSens"),
        (6, "E01:DischargeSens"),
        (7, "E09:SuctionSens"),
        (8, "E22:OutdoorTempSens"),
        (9, "E10:DriveCommErr"),
        (10, "E21:WiredCtrlComm"),
        (11, "r02:CompStartFault"),
        (12, "E12:CompDrive"),
        (13, "r01:IPMFault"),
        (14, "PA:TankTempProtect"),
        (15, "r10:ACVoltageProt"),
    ),
    REG_ERROR_CODE_3: (
        (0, "P19:ACCurrentProt"),
        (1, "r06:CompCurrentProt"),
        (2, "FA:FanMotor"),
        (3, "r11:BusVoltageProt"),
        (4, "r05:IPMHighTemp"),
        (5, "P11:HighDischarge"),
        (6, "P02:HighPressure"),
        (7, "P06:LowPressure"),
        (8, "P01:WaterFlow"),
        (9, "P27:CoolHighCoil"),
        (10, "E26:LowAmbientTemp"),
        (11, "EC:EEVLowPress"),
        (12, "ED:EVILowPress"),
        (13, "P15:WaterTempDiff"),
        (14, "P16:LowOutletTemp"),
        (15, "r20:CompPressDiff"),
    ),
}

_FUNCTION_CODES = {
    0x03: "Read Holding",
    0x06: "Write Single",
    0x10: "Write Multiple",
    0x83: "Read Holding (err)",
    0x86: "Write Single (err)",
    0x90: "Write Multiple (err)",
}


def _check_u16(value: int, what: str) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{what} must be a 16-bit unsigned value, got {value}")


def _f32(value: float) -> float:
    """Round a value to single precision, as the display arithmetic does."""
    return struct.unpack("<f", struct.pack("<f", value))[0]


def to_signed(raw: int) -> int:
    """Interpret a 16-bit raw value as two's complement."""
    _check_u16(raw, "raw")
    return raw - 0x10000 if raw & 0x8000 else raw


def register_lookup(address: int) -> RegisterInfo | None:
    """Return the metadata for a register, or None if the address is unknown."""
    return _REGISTERS.get(address)


def _with_unit(text: str, unit: str | None) -> str:
    return f"{text} {unit}" if unit else text


def format_value(address: int, raw: int) -> str:
    """Decode a raw register value into a human-readable string."""
    _check_u16(raw, "raw")

    if address in _ON_OFF_REGISTERS:
        return "ON" if raw else "OFF"
    label = _ENUM_TABLES.get(address, {}).get(raw)
    if label is not None:
        return label

    info = register_lookup(address)
    if info is None:
        return str(raw)

    if REG_STATUS_1 <= address <= REG_ERROR_CODE_3:
        return f"0x{raw:04X}"

    if info.is_signed:
        value = to_signed(raw)
        if info.scale != 1.0:
            return _with_unit(f"{_f32(value * _f32(info.scale)):.1f}", info.unit)
        return _with_unit(str(value), info.unit)

    if info.scale != 1.0:
        return _with_unit(f"{_f32(raw * _f32(info.scale)):.2f}", info.unit)
    return _with_unit(str(raw), info.unit)


def format_bitmap(address: int, raw: int) -> str:
    """Describe the set bits of a status or error register."""
    _check_u16(raw, "raw")
    bits = _BITMAPS.get(address)
    if bits is None:
        return f"0x{raw:04X}"
    labels = [label for bit, label in bits if raw & (1 << bit)]
    return " | ".join(labels) if labels else "(none)"


def function_code_name(fc: int) -> str:
    """Return a short name for a Modbus function code."""
    return _FUNCTION_CODES.get(fc, "Unknown FC")