# Runs instruction words through the decoder in simulation and prints what
# comes out. With no words on the command line, runs a small built-in smoke
# test instead.

import argparse

from amaranth import *
from amaranth.sim import Simulator

from rvidu.config import add_config_arguments, config_from_args
from rvidu.decoder import Decoder
from rvidu.isa import FuType, FuOp, Cause, PrivLevel, XStatus

parser = argparse.ArgumentParser(
    prog = "sim-decoder",
    description = "Decode instruction words in simulation",
)
add_config_arguments(parser)
parser.add_argument(
    "--priv",
    choices = ["u", "s", "m"],
    default = "m",
    help = "privilege level to decode at",
)
parser.add_argument(
    "--vcd",
    metavar = "FILE",
    help = "write a waveform trace to FILE",
)
parser.add_argument(
    "words",
    nargs = "*",
    help = "instruction words, in hex",
)

# (name, word, expected fields)
SMOKE = [
    ("addi x1, x5, 100", 0x06428093, {
        'fu': FuType.ALU, 'op': FuOp.ADD, 'rs1': 5, 'rd': 1, 'result': 100,
        'illegal': 0,
    }),
    ("add x3, x1, x2", 0x002081b3, {
        'fu': FuType.ALU, 'op': FuOp.ADD, 'rs1': 1, 'rs2': 2, 'rd': 3,
        'illegal': 0,
    }),
    ("beq x1, x2, -4", 0xfe208ee3, {
        'fu': FuType.CTRL_FLOW, 'op': FuOp.EQ, 'is_control_flow': 1,
        'illegal': 0,
    }),
    ("lw x10, 8(x2)", 0x00812503, {
        'fu': FuType.LOAD, 'op': FuOp.LW, 'rs1': 2, 'rd': 10, 'result': 8,
        'illegal': 0,
    }),
    ("ecall", 0x00000073, {
        'op': FuOp.ECALL, 'ex_valid': 1, 'cause': Cause.ENV_CALL_MMODE,
    }),
    ("all zeroes", 0x00000000, {
        'illegal': 1, 'ex_valid': 1, 'cause': Cause.ILLEGAL_INSTR,
    }),
]

def sample(ctx, dut):
    out = dut.out
    return {
        'fu': ctx.get(out.fu),
        'op': ctx.get(out.op),
        'rs1': ctx.get(out.rs1),
        'rs2': ctx.get(out.rs2),
        'rs3': ctx.get(out.rs3),
        'rd': ctx.get(out.rd),
        'result': ctx.get(out.result),
        'is_control_flow': ctx.get(dut.is_control_flow),
        'illegal': ctx.get(dut.illegal),
        'ex_valid': ctx.get(out.ex.valid),
        'cause': ctx.get(out.ex.cause),
    }

def describe(word, s):
    line = (f"{word:08x}  {s['fu'].name:9} {s['op'].name:18} "
            f"rd={s['rd']:2} rs1={s['rs1']:2} rs2={s['rs2']:2} "
            f"rs3={s['rs3']:2} imm={s['result']:#x}")
    if s['illegal']:
        line += " ILLEGAL"
    if s['ex_valid']:
        line += f" ex={s['cause'].name}"
    return line

if __name__ == "__main__":
    args = parser.parse_args()
    config = config_from_args(args)
    print(f"config: {config}")

    words = [int(w, 16) for w in args.words]
    priv = {"u": PrivLevel.U, "s": PrivLevel.S, "m": PrivLevel.M}[args.priv]

    dut = Decoder(config)
    sim = Simulator(dut)

    async def bench(ctx):
        ctx.set(dut.ctx.priv, priv)
        ctx.set(dut.ctx.fs, XStatus.INITIAL)

        if words:
            for word in words:
                ctx.set(dut.instruction, word)
                await ctx.delay(1e-6)
                print(describe(word, sample(ctx, dut)))
            return

        for name, word, expected in SMOKE:
            print(f"{name} ... ", end='')
            ctx.set(dut.instruction, word)
            await ctx.delay(1e-6)
            actual = sample(ctx, dut)
            for key, value in expected.items():
                assert actual[key] == value, \
                        f"{name}: {key} should be {value} but is {actual[key]}"
            print("PASS")

    sim.add_testbench(bench)
    if args.vcd is not None:
        with sim.write_vcd(vcd_file = args.vcd, traces = [
            dut.instruction,
            dut.illegal,
            dut.is_control_flow,
            dut.orig_instr,
        ]):
            sim.run()
    else:
        sim.run()
