"""
Thin adapter between FIT bytes and the splitter's data model.

Decoding uses fitparse. Each data message yields both views at once: the
raw payload kept for re-encoding (scaled values, date-times as FIT seconds,
enums as integer codes) and, for records, the display Sample used for
statistics and guesses. Encoding hands the reconstructed stream to
fit_tool, which owns the binary layout, scaling and CRC.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from fit_tool.fit_file_builder import FitFileBuilder
from fit_tool.profile.messages.activity_message import ActivityMessage
from fit_tool.profile.messages.device_info_message import DeviceInfoMessage
from fit_tool.profile.messages.event_message import EventMessage
from fit_tool.profile.messages.file_id_message import FileIdMessage
from fit_tool.profile.messages.lap_message import LapMessage
from fit_tool.profile.messages.record_message import RecordMessage
from fit_tool.profile.messages.session_message import SessionMessage
from fit_tool.profile.profile_type import (
    Activity,
    Event,
    EventType,
    FileType,
    Manufacturer,
    Sport,
    SubSport,
)
from fitparse import FitFile
from fitparse.utils import FitCRCError, FitParseError

from fitsplit.errors import DecodeError, EncodeError
from fitsplit.models import (
    FIT_EPOCH,
    ActivityModel,
    Discipline,
    MessageKind,
    RawMessage,
    Sample,
    Summary,
)

log = logging.getLogger(__name__)

SEMICIRCLE_TO_DEG = 180.0 / 2 ** 31
FIT_EPOCH_UNIX_S = int(FIT_EPOCH.timestamp())

# fit_tool takes these as Unix milliseconds; local_timestamp stays in FIT seconds
DATETIME_FIELDS = {"timestamp", "time_created", "start_time"}

# copied from the source file; unencodable values are dropped with a warning
PASSTHROUGH_KINDS = {MessageKind.FILE_ID, MessageKind.DEVICE_INFO, MessageKind.RECORD}

FIT_TOOL_MESSAGES = {
    MessageKind.FILE_ID: FileIdMessage,
    MessageKind.DEVICE_INFO: DeviceInfoMessage,
    MessageKind.RECORD: RecordMessage,
    MessageKind.EVENT: EventMessage,
    MessageKind.LAP: LapMessage,
    MessageKind.SESSION: SessionMessage,
    MessageKind.ACTIVITY: ActivityMessage,
}

ENUM_FIELDS = {
    "sport": Sport,
    "sub_sport": SubSport,
    "event": Event,
    "event_type": EventType,
    "manufacturer": Manufacturer,
}

# "type" means something different per message
TYPE_FIELD_ENUMS = {
    MessageKind.FILE_ID: FileType,
    MessageKind.ACTIVITY: Activity,
}


# ---------- Decode ----------

def _read_messages(data: bytes, check_crc: bool) -> list:
    ff = FitFile(io.BytesIO(data), check_crc=check_crc)
    return list(ff.get_messages())


def _raw_payload(message) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for fd in message.fields:
        if not fd.name:
            continue
        value = fd.value
        # date-times and enum names go back to the integers stored in the file
        if isinstance(value, (datetime, str)) and fd.raw_value is not None:
            value = fd.raw_value
        payload[fd.name] = value
    return payload


def _first(values: Dict[str, Any], *names: str) -> Any:
    """Pick the first defined field, e.g. an enhanced field over its legacy twin."""
    for name in names:
        value = values.get(name)
        if value is not None:
            return value
    return None


def _float_or_none(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _int_or_none(x: Any) -> Optional[int]:
    f = _float_or_none(x)
    return None if f is None else int(round(f))


def sample_from_values(values: Dict[str, Any]) -> Optional[Sample]:
    """Build a display sample from a record's processed values, None without a timestamp."""
    ts = values.get("timestamp")
    if not isinstance(ts, datetime):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    position = None
    lat, lon = values.get("position_lat"), values.get("position_long")
    if lat is not None and lon is not None:
        position = (float(lat) * SEMICIRCLE_TO_DEG, float(lon) * SEMICIRCLE_TO_DEG)

    return Sample(
        timestamp=ts,
        speed=_float_or_none(_first(values, "enhanced_speed", "speed")),
        heart_rate=_int_or_none(values.get("heart_rate")),
        distance=_float_or_none(values.get("distance")),
        cadence=_int_or_none(values.get("cadence")),
        power=_int_or_none(values.get("power")),
        altitude=_float_or_none(_first(values, "enhanced_altitude", "altitude")),
        position=position,
    )


def build_summary(sessions: List[Dict[str, Any]], samples: List[Sample]) -> Summary:
    first, last = samples[0], samples[-1]
    if sessions:
        sport = sessions[0].get("sport")
        duration = sum(_float_or_none(s.get("total_elapsed_time")) or 0.0 for s in sessions)
        distance = sum(_float_or_none(s.get("total_distance")) or 0.0 for s in sessions)
        avg_hr = _int_or_none(sessions[0].get("avg_heart_rate"))
    else:
        sport = None
        duration = (last.timestamp - first.timestamp).total_seconds()
        distance = last.distance or 0.0
        avg_hr = None

    return Summary(
        discipline=Discipline.parse(sport, default=Discipline.GENERIC),
        total_duration_s=duration,
        total_distance_m=distance,
        avg_heart_rate=avg_hr,
        start_time=first.timestamp,
        end_time=last.timestamp,
    )


def model_from_messages(fit_messages: Iterable) -> ActivityModel:
    """Build an ActivityModel from parsed fitparse data messages, in file order."""
    messages: List[RawMessage] = []
    samples: List[Sample] = []
    sessions: List[Dict[str, Any]] = []
    dropped = 0

    for message in fit_messages:
        type_id = message.mesg_num
        if type_id == MessageKind.RECORD:
            sample = sample_from_values({fd.name: fd.value for fd in message.fields})
            if sample is None:
                dropped += 1
                continue
            samples.append(sample)
        elif type_id == MessageKind.SESSION:
            sessions.append({fd.name: fd.value for fd in message.fields})
        messages.append(RawMessage(type_id, _raw_payload(message)))

    if dropped:
        log.warning("Dropped %d record(s) without a timestamp", dropped)
    if not samples:
        raise DecodeError("The file contains no record samples")

    return ActivityModel(
        samples=tuple(samples),
        messages=tuple(messages),
        summary=build_summary(sessions, samples),
    )


def decode(data: bytes) -> ActivityModel:
    """
    Decode FIT bytes into an ActivityModel.

    A failed integrity check only logs a warning and decodes again without
    the CRC check; anything else unreadable raises DecodeError.
    """
    try:
        try:
            fit_messages = _read_messages(data, check_crc=True)
        except FitCRCError as e:
            log.warning("FIT integrity check failed (%s), decoding anyway", e)
            fit_messages = _read_messages(data, check_crc=False)
    except (FitParseError, ValueError, EOFError) as e:
        raise DecodeError(f"Not a readable FIT file: {e}") from e

    model = model_from_messages(fit_messages)
    log.info(
        "Decoded %d samples, %d messages (%s, %.0f s)",
        len(model.samples), len(model.messages),
        model.summary.discipline.value, model.summary.total_duration_s,
    )
    return model


# ---------- Encode ----------

def _enum_for(kind: MessageKind, name: str):
    if name == "type":
        return TYPE_FIELD_ENUMS.get(kind)
    return ENUM_FIELDS.get(name)


def convert_field(kind: MessageKind, name: str, value: Any) -> Any:
    """Translate one payload value into what the fit_tool property expects."""
    if name in DATETIME_FIELDS and isinstance(value, (int, float)):
        return (int(value) + FIT_EPOCH_UNIX_S) * 1000
    if name.endswith(("_lat", "_long")) and isinstance(value, (int, float)):
        return value * SEMICIRCLE_TO_DEG
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        enum_cls = _enum_for(kind, name)
        if enum_cls is not None:
            return enum_cls[value.upper()]
    return value


def to_fit_tool_message(message: RawMessage):
    """Build the fit_tool message for one output message, or None for unsupported types."""
    kind = message.kind
    cls = FIT_TOOL_MESSAGES.get(kind) if kind is not None else None
    if cls is None:
        log.debug("Skipping message type %s", message.type_id)
        return None

    out = cls()
    for name, value in message.payload.items():
        if value is None or name.startswith("unknown_"):
            continue
        if not isinstance(getattr(cls, name, None), property):
            log.debug("%s has no field %s", cls.__name__, name)
            continue
        try:
            setattr(out, name, convert_field(kind, name, value))
        except Exception as e:
            if kind not in PASSTHROUGH_KINDS:
                raise EncodeError(f"Cannot encode {cls.__name__}.{name}={value!r}: {e}") from e
            log.warning("Dropping %s.%s=%r: %s", cls.__name__, name, value, e)
    return out


def encode(messages: Iterable[RawMessage]) -> bytes:
    """Encode an ordered message stream to FIT bytes."""
    try:
        builder = FitFileBuilder(auto_define=True, min_string_size=50)
        for message in messages:
            fit_message = to_fit_tool_message(message)
            if fit_message is not None:
                builder.add(fit_message)
        fit_bytes = builder.build().to_bytes()
    except EncodeError:
        raise
    except Exception as e:
        raise EncodeError(f"FIT encoding failed: {e}") from e

    log.info("Encoded %d bytes", len(fit_bytes))
    return fit_bytes
