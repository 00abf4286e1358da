"""CLI entry point for the face recognition service.

Usage:
    facerec recognize -m MODELS -i IMAGE [--jitter N] [--max-faces N] [--samples FILE]
    facerec enroll -m MODELS -i IMAGE -c CATEGORY --samples FILE [--jitter N]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from . import __version__

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _open_recognizer(args):
    from .constants import get_config
    from .recognizer import Recognizer

    config = get_config()
    if args.config:
        config.reload(Path(args.config))
    return Recognizer(args.models, config=config.facerec)


def cmd_recognize(args):
    """Recognize faces in an image and print them as JSON."""
    from .samples import load_samples

    with _open_recognizer(args) as rec:
        if args.samples:
            descriptors, categories = load_samples(args.samples)
            rec.set_samples(list(descriptors), list(categories))

        data = Path(args.image).read_bytes()
        faces = rec.recognize(data, args.jitter, args.max_faces)
        logger.info(f"Found {len(faces)} face(s)")

        output = []
        for face in faces:
            entry = face.to_dict()
            if args.samples:
                entry["category"] = rec.classify(face.vector)
            output.append(entry)

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return len(output)


def cmd_enroll(args):
    """Add the single face of an image to a sample file."""
    from .samples import load_samples, save_samples

    with _open_recognizer(args) as rec:
        face = rec.recognize_single_file(args.image, args.jitter)

    if face is None:
        logger.error(f"Expected exactly one face in {args.image}")
        sys.exit(1)

    samples_path = Path(args.samples)
    if samples_path.exists():
        descriptors, categories = load_samples(samples_path)
    else:
        descriptors = np.zeros((0, face.vector.shape[0]), dtype=np.float32)
        categories = np.zeros((0,), dtype=np.int32)

    descriptors = np.vstack([descriptors, face.vector.astype(np.float32)])
    categories = np.append(categories, np.int32(args.category))
    save_samples(samples_path, descriptors, categories)
    logger.info(f"Enrolled category {args.category} ({len(categories)} samples total)")
    return len(categories)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="facerec",
        description="Face recognition service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  facerec recognize -m models -i group.jpg --jitter 5
  facerec enroll -m models -i alice.jpg -c 7 --samples known.npz
  facerec recognize -m models -i door.jpg --samples known.npz
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Config file")
    parser.add_argument("-d", "--debug", action="store_true", help="Debug mode")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # recognize
    recog_p = subparsers.add_parser("recognize", help="Recognize faces in an image")
    recog_p.add_argument("-m", "--models", required=True, help="Model directory")
    recog_p.add_argument("-i", "--image", required=True, help="Image file")
    recog_p.add_argument("-j", "--jitter", type=int, default=0,
                         help="Jittered copies averaged per descriptor")
    recog_p.add_argument("--max-faces", type=int, default=0,
                         help="Skip images with more faces than this (0 = no limit)")
    recog_p.add_argument("-s", "--samples", help="Sample file to classify against")

    # enroll
    enroll_p = subparsers.add_parser("enroll", help="Add a face to a sample file")
    enroll_p.add_argument("-m", "--models", required=True, help="Model directory")
    enroll_p.add_argument("-i", "--image", required=True, help="Image with exactly one face")
    enroll_p.add_argument("-c", "--category", type=int, required=True, help="Category id")
    enroll_p.add_argument("-s", "--samples", required=True, help="Sample file (.npz)")
    enroll_p.add_argument("-j", "--jitter", type=int, default=0,
                          help="Jittered copies averaged per descriptor")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    commands = {
        "recognize": cmd_recognize,
        "enroll": cmd_enroll,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
