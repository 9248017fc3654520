# Static, per-build capability set for the decoder.
#
# Everything in here is fixed when the design is elaborated. Nothing in this
# file turns into a signal; it decides which logic gets generated and which
# constant illegality terms get folded into the decode.

import argparse
from dataclasses import dataclass

@dataclass(frozen = True)
class DecoderConfig:
    """Which ISA extensions are built into this instantiation.

    Parameters
    ----------
    xlen (int): native integer width, 32 or 64.
    rvm (bool): integer multiply/divide.
    rva (bool): atomics.
    rvc (bool): compressed instructions are accepted from the expander.
    rvf, rvd (bool): single and double precision floating point.
    xf16, xf16alt, xf8 (bool): half, alternate half (bfloat16) and 8-bit
        floating point formats.
    xfvec (bool): packed-SIMD ("vectorial") floating point over FLEN.
    rvb (bool): bit manipulation (Zba/Zbb/Zbc/Zbs).
    zicond (bool): conditional-zero (conditional move) instructions.
    cvxif (bool): instructions we can't decode are offloaded to an external
        coprocessor instead of trapping.
    accel (bool): the custom stream/tensor accelerator opcode space is live.
    rvs, rvu (bool): supervisor and user privilege modes exist.
    debug (bool): external debug support (DRET, debug requests).
    """
    xlen: int = 64
    rvm: bool = True
    rva: bool = True
    rvc: bool = True
    rvf: bool = True
    rvd: bool = True
    xf16: bool = False
    xf16alt: bool = False
    xf8: bool = False
    xfvec: bool = False
    rvb: bool = False
    zicond: bool = False
    cvxif: bool = False
    accel: bool = False
    rvs: bool = True
    rvu: bool = True
    debug: bool = True

    def __post_init__(self):
        assert self.xlen in (32, 64), f"unsupported xlen: {self.xlen}"
        assert self.rvf or not self.rvd, "RVD requires RVF"
        assert self.rvu or not self.rvs, "supervisor mode requires user mode"

    @property
    def fp_present(self):
        return self.rvf or self.rvd or self.xf16 or self.xf16alt or self.xf8

    @property
    def flen(self):
        if self.rvd:
            return 64
        if self.rvf:
            return 32
        if self.xf16 or self.xf16alt:
            return 16
        if self.xf8:
            return 8
        return 0

    # A vectorial format is only available if at least two elements of it fit
    # into an FP register.

    @property
    def rvf_vec(self):
        return self.xfvec and self.rvf and self.flen > 32

    @property
    def xf16_vec(self):
        return self.xfvec and self.xf16 and self.flen > 16

    @property
    def xf16alt_vec(self):
        return self.xfvec and self.xf16alt and self.flen > 16

    @property
    def xf8_vec(self):
        return self.xfvec and self.xf8 and self.flen > 8

# Capability switches exposed on the command line by the scripts.
_FLAGS = [
    'rvm', 'rva', 'rvc', 'rvf', 'rvd', 'xf16', 'xf16alt', 'xf8', 'xfvec',
    'rvb', 'zicond', 'cvxif', 'accel', 'rvs', 'rvu', 'debug',
]

def add_config_arguments(parser):
    defaults = DecoderConfig()
    parser.add_argument(
        "--xlen",
        type = int,
        choices = [32, 64],
        default = defaults.xlen,
        help = "native integer width",
    )
    for flag in _FLAGS:
        parser.add_argument(
            f"--{flag}",
            action = argparse.BooleanOptionalAction,
            default = getattr(defaults, flag),
            help = f"build in {flag} (default: {getattr(defaults, flag)})",
        )

def config_from_args(args):
    return DecoderConfig(
        xlen = args.xlen,
        **{flag: getattr(args, flag) for flag in _FLAGS},
    )
