"""
render_dicom.py - Render DICOM files to PNG through the window/level pipeline.

Renders a single file, or every file in a folder, and writes one PNG per
object to the reports folder.  A window can be forced on the command line,
otherwise each object's own WindowWidth/WindowCenter is used.

Usage
-----
    python scripts/render_dicom.py                       # renders data/raw/
    python scripts/render_dicom.py path/to/file.dcm
    python scripts/render_dicom.py path/to/folder --width 400 --center 40
    python scripts/render_dicom.py scan.dcm --compare    # adds a VOI function comparison
    python scripts/render_dicom.py scan.dcm --voi-function SIGMOID
"""

import argparse
import logging
import os
import sys
from typing import Optional

# Ensure repo root is on sys.path regardless of launch directory
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

import matplotlib
matplotlib.use("Agg")  # non-interactive backend, works without a display
import matplotlib.pyplot as plt  # noqa: E402

from dicomview.attributes import read_dicom_file  # noqa: E402
from dicomview.config import CONFIG  # noqa: E402
from dicomview.errors import DecodeError  # noqa: E402
from dicomview.session import ViewerSession  # noqa: E402
from dicomview.visualization import plot_voi_function_comparison, save_frame_png  # noqa: E402
from dicomview.windowing import VoiLutFunction, WindowLevel  # noqa: E402

logging.basicConfig(
    level=CONFIG["logging"]["level"],
    format=CONFIG["logging"]["format"],
)
logger = logging.getLogger(__name__)


def _collect_inputs(path: str) -> list[str]:
    if os.path.isdir(path):
        return [
            os.path.join(path, f)
            for f in sorted(os.listdir(path))
            if not f.startswith(".")
        ]
    return [path]


def render_paths(
    paths: list[str],
    output_folder: str,
    window_level: Optional[WindowLevel] = None,
    compare: bool = False,
    voi_function: Optional[VoiLutFunction] = None,
) -> tuple[int, int]:
    """
    Render every path in *paths* to ``<output_folder>/<stem>.png``.

    *voi_function* replaces each object's VOILUTFunction before its LUT is
    built; RGB objects are unaffected.

    Returns
    -------
    tuple[int, int]
        (rendered, failed) counts.
    """
    session = ViewerSession()
    rendered = failed = 0

    for path in paths:
        stem = os.path.splitext(os.path.basename(path))[0]
        try:
            logger.debug("Loading %s", path)
            ds = read_dicom_file(path)
            if voi_function is not None:
                ds.VOILUTFunction = voi_function.value
            frame = session.load_dataset(ds)
            if window_level is not None:
                frame = session.set_window_level(window_level) or frame
            save_frame_png(frame, os.path.join(output_folder, f"{stem}.png"))

            if compare:
                fig = plot_voi_function_comparison(ds)
                fig.savefig(
                    os.path.join(output_folder, f"{stem}_voi.png"),
                    dpi=100, bbox_inches="tight",
                )
                plt.close(fig)
            rendered += 1
        except (DecodeError, OSError) as exc:
            logger.warning("Could not render %s: %s", path, exc)
            failed += 1

    return rendered, failed


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0].strip())
    parser.add_argument(
        "input",
        nargs="?",
        default=os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"]),
        help="DICOM file or folder (default: configured input folder)",
    )
    parser.add_argument(
        "--output",
        default=os.path.join(_REPO_ROOT, CONFIG["paths"]["output_folder"]),
        help="folder for PNG output (default: configured output folder)",
    )
    parser.add_argument("--width", type=float, help="window width override")
    parser.add_argument("--center", type=float, help="window centre override")
    parser.add_argument(
        "--voi-function",
        choices=[f.value for f in VoiLutFunction],
        help="VOI LUT function to use instead of each object's own",
    )
    parser.add_argument(
        "--compare",
        action="store_true",
        help="also save a LINEAR / LINEAR_EXACT / SIGMOID comparison figure",
    )
    args = parser.parse_args()

    if (args.width is None) != (args.center is None):
        parser.error("--width and --center must be given together")
    window_level = (
        WindowLevel(width=args.width, center=args.center)
        if args.width is not None
        else None
    )

    if not os.path.exists(args.input):
        logger.error("Input not found: %s", args.input)
        sys.exit(1)

    paths = _collect_inputs(args.input)
    voi_function = VoiLutFunction.parse(args.voi_function) if args.voi_function else None
    rendered, failed = render_paths(
        paths, args.output, window_level, args.compare, voi_function
    )

    print("=" * 50)
    print("RENDER SUMMARY")
    print("=" * 50)
    print(f"Files found : {len(paths)}")
    print(f"Rendered    : {rendered}")
    print(f"Failed      : {failed}")
    print(f"Output      : {args.output}")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
