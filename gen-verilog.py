# Generates Verilog for the decoder, or for one of the components that sit
# around it, under a chosen configuration.

import argparse
from pathlib import Path

from amaranth import *
from amaranth.back import verilog

from rvidu.config import add_config_arguments, config_from_args
from rvidu.decoder import Decoder
from rvidu.regfile import RegFile
from rvidu.accel import AccelStub

parser = argparse.ArgumentParser(
    prog = "gen-verilog",
    description = "Emit Verilog for the instruction decode unit",
)
add_config_arguments(parser)
parser.add_argument(
    "--top",
    choices = ["decoder", "regfile", "predfile", "accel"],
    default = "decoder",
    help = "which component to generate",
)
parser.add_argument(
    "-o", "--output",
    metavar = "FILE",
    help = "where to write the Verilog (default: stdout)",
)

if __name__ == "__main__":
    args = parser.parse_args()
    config = config_from_args(args)

    if args.top == "decoder":
        top = Decoder(config)
        name = "rvidu_decoder"
    elif args.top == "regfile":
        top = RegFile(width = config.xlen)
        name = "rvidu_regfile"
    elif args.top == "predfile":
        # Eight one-bit predicate registers, with p0 reading all ones.
        top = RegFile(width = 1, depth = 8, read_ports = 3,
                      hardwired = (0, 1))
        name = "rvidu_predfile"
    else:
        top = AccelStub(xlen = config.xlen)
        name = "rvidu_accel_stub"

    text = f"// config: {config}\n" + verilog.convert(top, name = name)
    if args.output is not None:
        Path(args.output).write_text(text)
    else:
        print(text)
