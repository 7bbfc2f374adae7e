import argparse
import logging
import sys

from . import config
from .datablock import DataBlock
from .errors import ScaenetError
from .errors import StructureError
from .network import FFCNN

logger = logging.getLogger("scaenet")


def describe(args):
    net = FFCNN.load(args.network)

    print(f"Input patch: {net.input_width}x{net.input_height}x{net.input_depth}")
    print(net)


def classify(args):
    net = FFCNN.load(args.network)
    image = DataBlock.from_image(args.image)

    net.center_input(image, args.cx, args.cy)
    net.compute()

    print(net.get_output_class(multi_class=args.multi_class))

    if args.scores:
        print(net.get_output_scores())


def importance(args):
    net = FFCNN.load(args.network)

    if net.input_depth not in {1, 3}:
        raise StructureError(
            f"an input of depth {net.input_depth} cannot be written as an image"
        )

    image = DataBlock.from_image(args.image)

    net.center_input(image, args.cx, args.cy)
    net.compute()
    net.evaluate_input_importance(args.channel)

    attribution = net.get_layer(0).input.copy()
    attribution.values /= max(float(attribution.values.max()), 1e-12)
    attribution.to_image(args.output)

    logger.info("Wrote importance map to '%s'", args.output)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="scaenet", description="Inspect and run saved FFCNN networks."
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug messages (overrides SCAENET_LOG_LEVEL).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_describe = subparsers.add_parser("describe", help="Print the layer chain.")
    parser_describe.add_argument("network", type=str, help="Path to a saved network.")
    parser_describe.set_defaults(func=describe)

    parser_classify = subparsers.add_parser(
        "classify", help="Classify the patch centered on a pixel."
    )
    parser_importance = subparsers.add_parser(
        "importance", help="Write the input importance map of a patch."
    )

    for sub in (parser_classify, parser_importance):
        sub.add_argument("network", type=str, help="Path to a saved network.")
        sub.add_argument("image", type=str, help="Path to the input image.")
        sub.add_argument("cx", type=int, help="Patch center, x coordinate.")
        sub.add_argument("cy", type=int, help="Patch center, y coordinate.")

    parser_classify.add_argument(
        "--multi-class",
        action="store_true",
        help="Print a bit-mask of every class above the threshold.",
    )
    parser_classify.add_argument(
        "--scores", action="store_true", help="Also print the output scores."
    )
    parser_classify.set_defaults(func=classify)

    parser_importance.add_argument(
        "--channel",
        type=int,
        default=None,
        help="Output channel to explain (default: all of them).",
    )
    parser_importance.add_argument(
        "--output",
        type=str,
        default="importance.png",
        help="Path of the generated importance map.",
    )
    parser_importance.set_defaults(func=importance)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        args.func(args)

    except (ScaenetError, IndexError) as exc:
        logger.error("%s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
