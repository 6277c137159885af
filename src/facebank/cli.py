"""CLI for facebank: ``facebank info|list|delete|describe|match``."""

import argparse
import logging
import sys
from typing import Optional

logger = logging.getLogger(__name__)


def _parse_bbox(value: str):
    """Parse ``LEFT,TOP,RIGHT,BOTTOM`` into a BoundingBox."""
    from facebank.types import BoundingBox

    parts = value.split(",")
    try:
        left, top, right, bottom = (float(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected LEFT,TOP,RIGHT,BOTTOM, got {value!r}"
        ) from None
    if right <= left or bottom <= top:
        raise argparse.ArgumentTypeError(f"empty box: {value!r}")
    return BoundingBox(left, top, right, bottom)


def _add_bbox_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--bbox", type=_parse_bbox, default=None, metavar="L,T,R,B",
        help="Face box in a full frame; the padded face is cropped before extraction",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facebank",
        description="Face descriptor extraction and gallery matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  facebank info                                   # Versions, model dir, backend status
  facebank list gallery.json                      # Enrolled identities
  facebank describe face.jpg                      # Legacy descriptor summary
  facebank match gallery.json face.jpg -a frontal # Match a face crop
  facebank describe frame.jpg --bbox 120,80,320,300
  facebank delete gallery.json <identity_id>
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "-c", "--config", type=str, default=None, metavar="PATH",
        help="YAML configuration file",
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    sub.add_parser("info", help="Show configuration and embedding backend status")

    list_p = sub.add_parser("list", help="List identities in a gallery file")
    list_p.add_argument("gallery", help="Path to gallery JSON")

    del_p = sub.add_parser("delete", help="Delete an identity from a gallery file")
    del_p.add_argument("gallery", help="Path to gallery JSON")
    del_p.add_argument("identity_id", help="Identity to delete")

    desc_p = sub.add_parser("describe", help="Extract a descriptor from a face crop")
    desc_p.add_argument("image", help="Path to face crop or full frame")
    _add_bbox_argument(desc_p)
    desc_p.add_argument(
        "--embedding", action="store_true",
        help="Use the embedding backend when available",
    )

    match_p = sub.add_parser("match", help="Match a face crop against a gallery file")
    match_p.add_argument("gallery", help="Path to gallery JSON")
    match_p.add_argument("image", help="Path to face crop or full frame")
    _add_bbox_argument(match_p)
    match_p.add_argument(
        "-a", "--angle", default="frontal",
        help="Angle class of the query face (default: frontal)",
    )
    match_p.add_argument(
        "--embedding", action="store_true",
        help="Use the embedding backend when available",
    )
    match_p.add_argument(
        "--include-incomplete", action="store_true",
        help="Also match identities that have not captured every angle",
    )

    return parser


def _load_config(args: argparse.Namespace):
    from facebank.config import BankConfig

    if args.config:
        return BankConfig.from_yaml(args.config)
    return BankConfig()


def _read_image(path: str):
    """Read an image file as RGB, or None if unreadable."""
    import cv2

    bgr = cv2.imread(path, cv2.IMREAD_COLOR)
    if bgr is None:
        return None
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def _read_face(args: argparse.Namespace):
    """Read the image argument, cropped to --bbox when given."""
    image = _read_image(args.image)
    if image is None or args.bbox is None:
        return image

    from facebank.crop import face_crop

    crop, box = face_crop(image, args.bbox)
    logger.debug(
        "Cropped face to (%d, %d, %d, %d)", box.left, box.top, box.right, box.bottom,
    )
    return crop


def _build_extractor(config, use_embedding: bool):
    from facebank.embedding import EmbeddingAdapter
    from facebank.features.codec import DescriptorCodec
    from facebank.pipeline import DescriptorExtractor
    from facebank.quality import QualityGate

    adapter = None
    if use_embedding:
        adapter = EmbeddingAdapter(device=config.device)
        adapter.initialize()
    return DescriptorExtractor(DescriptorCodec(), adapter, QualityGate(config.quality))


def _cmd_info(args: argparse.Namespace) -> int:
    from facebank import __version__
    from facebank.embedding import EmbeddingAdapter
    from facebank.backends.facenet import FaceNetONNXBackend
    from facebank.paths import get_models_dir, model_path

    config = _load_config(args)
    print(f"facebank {__version__}")
    print(f"  models dir: {get_models_dir()}")
    facenet = model_path(FaceNetONNXBackend.MODEL_SUBDIR, FaceNetONNXBackend.MODEL_FILE)
    print(f"  facenet model: {facenet}")

    adapter = EmbeddingAdapter(device=config.device)
    status = "available" if adapter.initialize() else "unavailable (legacy descriptors)"
    adapter.close()
    print(f"  embedding backend: {status}")

    print("  thresholds:")
    print(f"    legacy     {config.legacy.threshold:.2f} "
          f"(+{config.legacy.same_angle_boost:.2f} / -{config.legacy.different_angle_penalty:.2f})")
    print(f"    embedding  {config.embedding.threshold:.2f} "
          f"(+{config.embedding.same_angle_boost:.2f} / -{config.embedding.different_angle_penalty:.2f})")
    print(f"  embedding norm band: [{config.quality.norm_min}, {config.quality.norm_max}]")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    from facebank.enrollment import completion_progress
    from facebank.persistence import load_gallery

    gallery = load_gallery(args.gallery)
    identities = gallery.identities()
    if not identities:
        print("No identities enrolled.")
        return 0

    for identity in identities:
        angles = ",".join(sorted(a.value for a in identity.captured_angles)) or "-"
        mark = "complete" if identity.is_complete else f"{completion_progress(identity.captured_angles):.0%}"
        n_records = len(gallery.records_for(identity.identity_id))
        print(f"  {identity.identity_id}  {identity.display_name:20s}  {mark:>8s}  "
              f"records={n_records}  angles={angles}")
    return 0


def _cmd_delete(args: argparse.Namespace) -> int:
    from facebank.persistence import load_gallery, save_gallery

    gallery = load_gallery(args.gallery)
    if not gallery.delete(args.identity_id):
        print(f"Unknown identity: {args.identity_id}", file=sys.stderr)
        return 1
    save_gallery(gallery, args.gallery)
    print(f"Deleted {args.identity_id}")
    return 0


def _cmd_describe(args: argparse.Namespace) -> int:
    from facebank.quality import QualityGate

    config = _load_config(args)
    image = _read_face(args)
    if image is None:
        print(f"Cannot read image: {args.image}", file=sys.stderr)
        return 1

    extraction = _build_extractor(config, args.embedding).extract(image, None)
    if not extraction.ok:
        print(f"Extraction failed: {extraction.error}", file=sys.stderr)
        return 1

    descriptor = extraction.descriptor
    report = QualityGate(config.quality).assess(descriptor)
    values = descriptor.values
    print(f"{descriptor.label}")
    print(f"  mean={values.mean():.4f} std={values.std():.4f} "
          f"min={values.min():.4f} max={values.max():.4f}")
    if extraction.fallbacks:
        print(f"  zero blocks: {', '.join(extraction.fallbacks)}")
    print(f"  quality: {'ok' if report.accepted else 'rejected (' + report.reason + ')'}")
    return 0


def _cmd_match(args: argparse.Namespace) -> int:
    from facebank.matcher import MatchResolver
    from facebank.persistence import load_gallery
    from facebank.quality import QualityGate
    from facebank.types import AngleClass

    config = _load_config(args)
    angle = AngleClass.from_string(args.angle)
    gallery = load_gallery(args.gallery)
    image = _read_face(args)
    if image is None:
        print(f"Cannot read image: {args.image}", file=sys.stderr)
        return 1

    extraction = _build_extractor(config, args.embedding).extract(image, None)
    if not extraction.ok:
        print(f"Extraction failed: {extraction.error}", file=sys.stderr)
        return 1
    report = QualityGate(config.quality).assess(extraction.descriptor)
    if not report.accepted:
        print(f"Low quality descriptor: {report.reason}")
        return 2

    complete_only = config.require_complete_enrollment and not args.include_incomplete
    snapshot = gallery.snapshot(complete_only=complete_only)
    outcome = MatchResolver(config).resolve(extraction.descriptor, angle, snapshot)

    if outcome.result is None:
        if outcome.identity_id is None:
            print("No match (no comparable records)")
        else:
            print(f"No match (best {outcome.identity_id}: {outcome.adjusted_score:.3f} "
                  f"<= {outcome.threshold:.2f})")
        return 2

    result = outcome.result
    print(f"Match: {result.display_name} ({result.identity_id})")
    print(f"  confidence={result.confidence:.3f} raw={outcome.raw_score:.3f} "
          f"angle={result.matched_angle.value}")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Entry point for ``facebank`` CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    commands = {
        "info": _cmd_info,
        "list": _cmd_list,
        "delete": _cmd_delete,
        "describe": _cmd_describe,
        "match": _cmd_match,
    }
    try:
        return commands[args.command](args)
    except (FileNotFoundError, NotADirectoryError) as e:
        print(str(e), file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
