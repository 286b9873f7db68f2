from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from fitsplit import codec
from fitsplit.config import Config
from fitsplit.errors import FitSplitError
from fitsplit.planner import PRESETS, EditingSession
from fitsplit.reconstructor import reconstruct
from fitsplit.report import build_report, dump_report, write_report

log = logging.getLogger(__name__)


def parse_int_list(text: str | None) -> list[int]:
    if not text:
        return []
    return [int(part) for part in text.split(",") if part.strip()]


def parse_name_list(text: str | None) -> list[str]:
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def plan_segments(
    session: EditingSession,
    cuts: Sequence[int] | None = None,
    preset: str | None = None,
    auto: int | None = None,
    disciplines: Sequence[str] | None = None,
) -> EditingSession:
    """
    Apply one way of cutting (explicit cuts, a preset, or automatic
    detection) and then any explicit disciplines, in segment order.
    """
    if preset:
        session = session.apply_preset(preset)
    elif auto:
        detected = session.detect(auto)
        if not detected:
            log.warning("No transitions detected in %d samples", len(session.model))
        session = session.set_cuts(detected)
    elif cuts:
        session = session.set_cuts(cuts)

    disciplines = list(disciplines or [])
    if len(disciplines) > len(session.segments):
        raise ValueError(
            f"Got {len(disciplines)} disciplines for {len(session.segments)} segments"
        )
    for idx, name in enumerate(disciplines):
        session = session.set_discipline(idx, name)
    return session


def start_session(data: bytes, config: Config) -> EditingSession:
    model = codec.decode(data)
    return EditingSession.start(
        model,
        cycling_above=config.cycling_above_kmh,
        transition_below=config.transition_below_kmh,
    )


def split_bytes(session: EditingSession, config: Config) -> bytes:
    messages = reconstruct(session.model, session.segments, tz_name=config.timezone)
    return codec.encode(messages)


def inspect_file(fit_path: Path, config: Config, detect: int | None = None) -> dict:
    """Decode a FIT file and describe it, optionally with suggested cuts."""
    session = start_session(fit_path.read_bytes(), config)
    suggested = session.detect(detect) if detect else None
    return build_report(session.model, session.segments, suggested_cuts=suggested)


def split_file(
    fit_path: Path,
    config: Config,
    cuts: Sequence[int] | None = None,
    preset: str | None = None,
    auto: int | None = None,
    disciplines: Sequence[str] | None = None,
    output: Path | None = None,
    write_yaml: bool = False,
) -> Path:
    """
    Split a FIT file into a multi-session file, return the output path.

    If write_yaml is True, the segment table is written next to the output.
    """
    session = start_session(fit_path.read_bytes(), config)
    session = plan_segments(session, cuts=cuts, preset=preset, auto=auto, disciplines=disciplines)
    fit_bytes = split_bytes(session, config)

    out_path = output or config.output_path_for(fit_path)
    out_path.write_bytes(fit_bytes)
    log.info("Wrote %s (%d sessions)", out_path, len(session.segments))

    if write_yaml:
        write_report(build_report(session.model, session.segments), out_path.with_suffix(".yaml"))
    return out_path


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fitsplit",
        description="Split one FIT activity into a multi-session (multisport) activity.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_inspect = sub.add_parser("inspect", help="print summary and suggested cuts as YAML")
    p_inspect.add_argument("fit_file", type=Path)
    p_inspect.add_argument("--detect", type=int, default=None, metavar="K",
                           help="suggest up to K automatic cuts")

    p_split = sub.add_parser("split", help="write a multi-session FIT file")
    p_split.add_argument("fit_file", type=Path)
    how = p_split.add_mutually_exclusive_group(required=True)
    how.add_argument("--cuts", help="comma-separated sample indices, e.g. 600,1800")
    how.add_argument("--preset", choices=sorted(PRESETS))
    how.add_argument("--auto", type=int, metavar="K", help="detect up to K cuts")
    p_split.add_argument("--disciplines", help="comma-separated, in segment order")
    p_split.add_argument("-o", "--output", type=Path, default=None)
    p_split.add_argument("--report", action="store_true", help="also write a YAML segment table")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_arg_parser().parse_args(argv)
    config = Config.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.fit_file.exists():
        print(f"File not found: {args.fit_file}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "inspect":
            report = inspect_file(args.fit_file, config, detect=args.detect)
            print(dump_report(report), end="")
        else:
            out_path = split_file(
                args.fit_file,
                config,
                cuts=parse_int_list(args.cuts),
                preset=args.preset,
                auto=args.auto,
                disciplines=parse_name_list(args.disciplines),
                output=args.output,
                write_yaml=args.report,
            )
            print(f"Wrote {out_path}", file=sys.stderr)
    except (FitSplitError, ValueError) as e:
        log.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
