# Instruction encoders and a harness that runs words through the Decoder in
# simulation.

from amaranth.sim import Simulator

from rvidu.config import DecoderConfig
from rvidu.decoder import Decoder
from rvidu.isa import PrivLevel, XStatus

def r_type(opcode, rd, funct3, rs1, rs2, funct7):
    return ((funct7 << 25) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12)
            | (rd << 7) | opcode)

def i_type(opcode, rd, funct3, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (funct3 << 12) \
            | (rd << 7) | opcode

def s_type(opcode, funct3, rs1, rs2, imm):
    imm &= 0xFFF
    return ((imm >> 5) << 25) | (rs2 << 20) | (rs1 << 15) \
            | (funct3 << 12) | ((imm & 0x1F) << 7) | opcode

def b_type(funct3, rs1, rs2, offset):
    imm = offset & 0x1FFF
    return (((imm >> 12) & 1) << 31) | (((imm >> 5) & 0x3F) << 25) \
            | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) \
            | (((imm >> 1) & 0xF) << 8) | (((imm >> 11) & 1) << 7) \
            | 0b1100011

def u_type(opcode, rd, imm):
    return (imm & 0xFFFFF000) | (rd << 7) | opcode

def j_type(rd, offset):
    imm = offset & 0x1FFFFF
    return (((imm >> 20) & 1) << 31) | (((imm >> 1) & 0x3FF) << 21) \
            | (((imm >> 11) & 1) << 20) | (((imm >> 12) & 0xFF) << 12) \
            | (rd << 7) | 0b1101111

def r4_type(opcode, rd, rm, rs1, rs2, fmt, rs3):
    return (rs3 << 27) | (fmt << 25) | (rs2 << 20) | (rs1 << 15) \
            | (rm << 12) | (rd << 7) | opcode

def vec_fp(vecfltop, rd, vfmt, rs1, rs2, repl = 0):
    return (0b10 << 30) | (vecfltop << 25) | (rs2 << 20) | (rs1 << 15) \
            | (repl << 14) | (vfmt << 12) | (rd << 7) | 0b0110011

def custom0(*, phase, desc, payload = 0, mem_mode = 0, vd = 0, rs1 = 0,
            rs2 = 0):
    return (payload << 27) | (desc << 25) | (rs2 << 20) | (rs1 << 15) \
            | (mem_mode << 14) | (phase << 12) | (vd << 7) | 0b0001011

ECALL = 0x00000073
EBREAK = 0x00100073
MRET = 0x30200073
SRET = 0x10200073
DRET = 0x7b200073
WFI = 0x10500073

# Name in the result dict -> path to the signal under the Decoder.
OUTPUTS = {
    'pc': 'out.pc',
    'fu': 'out.fu',
    'op': 'out.op',
    'rs1': 'out.rs1',
    'rs2': 'out.rs2',
    'rs3': 'out.rs3',
    'rd': 'out.rd',
    'result': 'out.result',
    'use_imm': 'out.use_imm',
    'use_pc': 'out.use_pc',
    'use_zimm': 'out.use_zimm',
    'is_compressed': 'out.is_compressed',
    'vfp': 'out.vfp',
    'bp_address': 'out.bp.predict_address',
    'ex_valid': 'out.ex.valid',
    'cause': 'out.ex.cause',
    'tval': 'out.ex.tval',
    'illegal': 'illegal',
    'is_control_flow': 'is_control_flow',
    'orig_instr': 'orig_instr',
    'accel_valid': 'accel.valid',
    'accel_phase': 'accel.phase',
    'accel_desc': 'accel.desc',
    'accel_mem_mode': 'accel.mem_mode',
    'accel_elem_width': 'accel.elem_width',
    'accel_vdim': 'accel.vdim',
    'accel_pd': 'accel.pd',
    'accel_vd': 'accel.vd',
    'accel_rs3': 'accel.rs3',
}

# Fields with encodings that aren't enum members, so they're read as raw
# bits.
RAW = {'accel_phase', 'accel_desc'}

def _resolve(root, path):
    for part in path.split("."):
        root = getattr(root, part)
    return root

def decode_all(words, config = DecoderConfig(), inputs = None):
    """Decodes each of 'words' in turn and returns a list of dicts keyed like
    OUTPUTS.

    'inputs' maps dotted paths under the Decoder (e.g. "ctx.priv",
    "ex.valid") to values. Unless overridden, decode happens in M-mode with
    the FP context switched on.
    """
    dut = Decoder(config)
    results = []

    async def bench(ctx):
        ctx.set(dut.ctx.priv, PrivLevel.M)
        ctx.set(dut.ctx.fs, XStatus.INITIAL)
        for path, value in (inputs or {}).items():
            ctx.set(_resolve(dut, path), value)
        for word in words:
            ctx.set(dut.instruction, word)
            sample = {}
            for name, path in OUTPUTS.items():
                signal = _resolve(dut, path)
                if name in RAW:
                    signal = signal.as_value()
                sample[name] = ctx.get(signal)
            results.append(sample)

    sim = Simulator(dut)
    sim.add_testbench(bench)
    sim.run()
    return results

def decode(word, config = DecoderConfig(), **inputs):
    """Decodes one word. Keyword inputs use '__' in place of '.', so
    ctx__priv = PrivLevel.U sets ctx.priv."""
    inputs = {k.replace("__", "."): v for k, v in inputs.items()}
    return decode_all([word], config, inputs)[0]
