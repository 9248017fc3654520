import pytest

from rvidu.config import DecoderConfig
from rvidu.isa import FuType, FuOp, Cause

from tests.support import (decode, decode_all, r_type, i_type, s_type,
                           b_type, u_type, j_type)

OP = 0b0110011
OP_32 = 0b0111011
OP_IMM = 0b0010011
OP_IMM_32 = 0b0011011
LOAD = 0b0000011
STORE = 0b0100011
AMO = 0b0101111
SYSTEM = 0b1110011

RV32 = DecoderConfig(xlen = 32, rvd = False)

def test_addi():
    out = decode(i_type(OP_IMM, 1, 0b000, 5, 100))
    assert out['fu'] == FuType.ALU
    assert out['op'] == FuOp.ADD
    assert out['rs1'] == 5
    assert out['rd'] == 1
    assert out['result'] == 100
    assert out['use_imm'] == 1
    assert out['illegal'] == 0
    assert out['ex_valid'] == 0

def test_negative_immediate_sign_extends():
    out = decode(i_type(OP_IMM, 1, 0b000, 5, -1))
    assert out['result'] == 0xFFFF_FFFF_FFFF_FFFF

@pytest.mark.parametrize("word", [
    0x0000_0000,
    0xFFFF_FFFF,
    0b1111111,
    0b1011011,  # custom-2
    0b0101011,  # custom-1
])
def test_unknown_opcode_is_illegal(word):
    out = decode(word)
    assert out['illegal'] == 1
    assert out['fu'] == FuType.NONE
    assert out['ex_valid'] == 1
    assert out['cause'] == Cause.ILLEGAL_INSTR
    assert out['tval'] == word

def test_decode_is_idempotent():
    words = [
        i_type(OP_IMM, 1, 0b000, 5, 100),
        r_type(OP, 3, 0b000, 1, 2, 0b010_0000),
        0x0000_0000,
        b_type(0b001, 4, 5, -16),
    ]
    first = decode_all(words + words)
    assert first[:len(words)] == first[len(words):]
    assert decode_all(words) == first[:len(words)]

@pytest.mark.parametrize("funct7, funct3, op", [
    (0b000_0000, 0b000, FuOp.ADD),
    (0b010_0000, 0b000, FuOp.SUB),
    (0b000_0000, 0b001, FuOp.SLL),
    (0b000_0000, 0b010, FuOp.SLTS),
    (0b000_0000, 0b011, FuOp.SLTU),
    (0b000_0000, 0b100, FuOp.XORL),
    (0b000_0000, 0b101, FuOp.SRL),
    (0b010_0000, 0b101, FuOp.SRA),
    (0b000_0000, 0b110, FuOp.ORL),
    (0b000_0000, 0b111, FuOp.ANDL),
])
def test_register_register_base(funct7, funct3, op):
    out = decode(r_type(OP, 3, funct3, 1, 2, funct7))
    assert out['fu'] == FuType.ALU
    assert out['op'] == op
    assert (out['rs1'], out['rs2'], out['rd']) == (1, 2, 3)
    assert out['use_imm'] == 0
    assert out['illegal'] == 0

def test_unclaimed_function_code_is_illegal():
    out = decode(r_type(OP, 3, 0b000, 1, 2, 0b111_1111))
    assert out['illegal'] == 1

def test_muldiv_gating_keeps_op():
    word = r_type(OP, 3, 0b100, 1, 2, 0b000_0001)
    on = decode(word)
    off = decode(word, DecoderConfig(rvm = False))
    assert on['op'] == off['op'] == FuOp.DIV
    assert on['fu'] == off['fu'] == FuType.MULT
    assert on['illegal'] == 0
    assert off['illegal'] == 1

@pytest.mark.parametrize("word, op", [
    (r_type(OP, 3, 0b111, 1, 2, 0b010_0000), FuOp.ANDN),
    (r_type(OP, 3, 0b010, 1, 2, 0b001_0000), FuOp.SH1ADD),
    (r_type(OP, 3, 0b110, 1, 2, 0b000_0101), FuOp.MAX),
    (r_type(OP, 3, 0b001, 1, 2, 0b011_0000), FuOp.ROL),
    (r_type(OP_32, 3, 0b000, 1, 2, 0b000_0100), FuOp.ADDUW),
    (r_type(OP_32, 3, 0b100, 1, 0, 0b000_0100), FuOp.ZEXTH),
    (i_type(OP_IMM, 3, 0b001, 1, 0x600), FuOp.CLZ),
    (i_type(OP_IMM, 3, 0b101, 1, 0x6b8), FuOp.REV8),
    (i_type(OP_IMM, 3, 0b101, 1, 0x287), FuOp.ORCB),
    (i_type(OP_IMM, 3, 0b101, 1, 0x480 | 7), FuOp.BEXTI),
    (i_type(OP_IMM_32, 3, 0b001, 1, 0x601), FuOp.CTZW),
])
def test_bitmanip_gating_keeps_op(word, op):
    on = decode(word, DecoderConfig(rvb = True))
    off = decode(word, DecoderConfig(rvb = False))
    assert on['op'] == off['op'] == op
    assert on['illegal'] == 0
    assert off['illegal'] == 1

def test_base_ops_survive_overlay():
    # Turning the bitmanip and czero mappings on must not disturb anything
    # the base mapping claims.
    config = DecoderConfig(rvb = True, zicond = True)
    for funct7, funct3, op in [
        (0b000_0000, 0b000, FuOp.ADD),
        (0b010_0000, 0b000, FuOp.SUB),
        (0b010_0000, 0b101, FuOp.SRA),
        (0b000_0001, 0b000, FuOp.MUL),
    ]:
        out = decode(r_type(OP, 3, funct3, 1, 2, funct7), config)
        assert out['op'] == op
        assert out['illegal'] == 0

@pytest.mark.parametrize("funct3, op", [
    (0b101, FuOp.CZERO_EQZ),
    (0b111, FuOp.CZERO_NEZ),
])
def test_conditional_zero(funct3, op):
    word = r_type(OP, 3, funct3, 1, 2, 0b000_0111)
    on = decode(word, DecoderConfig(zicond = True))
    off = decode(word)
    assert on['op'] == off['op'] == op
    assert on['illegal'] == 0
    assert off['illegal'] == 1

def test_zexth_moves_between_opcodes():
    rv32 = r_type(OP, 3, 0b100, 1, 0, 0b000_0100)
    out = decode(rv32, DecoderConfig(xlen = 32, rvd = False, rvb = True))
    assert out['op'] == FuOp.ZEXTH
    assert out['illegal'] == 0
    # On RV64 that encoding belongs to OP-32 instead.
    out = decode(rv32, DecoderConfig(rvb = True))
    assert out['illegal'] == 1

@pytest.mark.parametrize("word, op", [
    (r_type(OP_32, 3, 0b000, 1, 2, 0), FuOp.ADDW),
    (r_type(OP_32, 3, 0b000, 1, 2, 0b000_0001), FuOp.MULW),
    (i_type(OP_IMM_32, 3, 0b000, 1, 5), FuOp.ADDW),
    (i_type(LOAD, 3, 0b011, 1, 0), FuOp.LD),
    (i_type(LOAD, 3, 0b110, 1, 0), FuOp.LWU),
    (s_type(STORE, 0b011, 1, 2, 0), FuOp.SD),
    (r_type(AMO, 3, 0b011, 1, 2, 0), FuOp.AMO_ADDD),
])
def test_rv64_only_encodings(word, op):
    rv64 = decode(word)
    rv32 = decode(word, RV32)
    assert rv64['op'] == rv32['op'] == op
    assert rv64['illegal'] == 0
    assert rv32['illegal'] == 1

def test_shift_amount_bit5():
    word = i_type(OP_IMM, 3, 0b001, 1, 32)
    assert decode(word)['illegal'] == 0
    out = decode(word, RV32)
    assert out['op'] == FuOp.SLL
    assert out['illegal'] == 1
    assert decode(i_type(OP_IMM, 3, 0b101, 1, 0x400 | 31), RV32)['op'] \
            == FuOp.SRA

@pytest.mark.parametrize("funct3, op", [
    (0b000, FuOp.LB),
    (0b001, FuOp.LH),
    (0b010, FuOp.LW),
    (0b100, FuOp.LBU),
    (0b101, FuOp.LHU),
])
def test_loads(funct3, op):
    out = decode(i_type(LOAD, 10, funct3, 2, -8))
    assert out['fu'] == FuType.LOAD
    assert out['op'] == op
    assert out['result'] == 0xFFFF_FFFF_FFFF_FFF8
    assert out['illegal'] == 0

def test_load_funct3_111_is_illegal():
    assert decode(i_type(LOAD, 10, 0b111, 2, 0))['illegal'] == 1

def test_store():
    out = decode(s_type(STORE, 0b010, 2, 3, 12))
    assert out['fu'] == FuType.STORE
    assert out['op'] == FuOp.SW
    assert (out['rs1'], out['rs2'], out['rd']) == (2, 3, 0)
    assert out['result'] == 12
    assert out['illegal'] == 0

def test_atomics_gating():
    word = r_type(AMO, 3, 0b010, 1, 2, 0b000_0100)  # amoswap.w
    on = decode(word)
    off = decode(word, DecoderConfig(rva = False))
    assert on['op'] == off['op'] == FuOp.AMO_SWAPW
    assert on['fu'] == FuType.STORE
    assert on['illegal'] == 0
    assert off['illegal'] == 1

def test_load_reserved_needs_rs2_zero():
    lr = r_type(AMO, 3, 0b010, 1, 0, 0b000_1000)
    assert decode(lr)['op'] == FuOp.AMO_LRW
    assert decode(lr)['illegal'] == 0
    assert decode(lr | (2 << 20))['illegal'] == 1

@pytest.mark.parametrize("funct3, op", [
    (0b000, FuOp.EQ),
    (0b001, FuOp.NE),
    (0b100, FuOp.LTS),
    (0b101, FuOp.GES),
    (0b110, FuOp.LTU),
    (0b111, FuOp.GEU),
])
def test_branches(funct3, op):
    out = decode(b_type(funct3, 1, 2, -4))
    assert out['fu'] == FuType.CTRL_FLOW
    assert out['op'] == op
    assert out['result'] == 0xFFFF_FFFF_FFFF_FFFC
    assert out['is_control_flow'] == 1
    assert out['illegal'] == 0

def test_bad_branch_does_not_redirect():
    out = decode(b_type(0b010, 1, 2, 8))
    assert out['illegal'] == 1
    assert out['is_control_flow'] == 0

def test_jal():
    out = decode(j_type(1, 2048))
    assert out['op'] == FuOp.JAL
    assert out['rd'] == 1
    assert out['result'] == 2048
    assert out['is_control_flow'] == 1

def test_jalr():
    out = decode(i_type(0b1100111, 1, 0b000, 5, 4))
    assert out['op'] == FuOp.JALR
    assert out['rs1'] == 5
    assert out['is_control_flow'] == 1
    assert out['illegal'] == 0
    bad = decode(i_type(0b1100111, 1, 0b001, 5, 4))
    assert bad['illegal'] == 1
    assert bad['is_control_flow'] == 0

def test_lui_and_auipc():
    lui = decode(u_type(0b0110111, 4, 0x12345000))
    assert lui['op'] == FuOp.ADD
    assert lui['result'] == 0x12345000
    assert lui['use_pc'] == 0
    auipc = decode(u_type(0b0010111, 4, 0x12345000))
    assert auipc['op'] == FuOp.ADD
    assert auipc['use_pc'] == 1

def test_fences():
    assert decode(0x0ff0000f)['op'] == FuOp.FENCE
    assert decode(0x0000100f)['op'] == FuOp.FENCE_I
    assert decode(0x0000200f)['illegal'] == 1

@pytest.mark.parametrize("funct3, rs1, op, zimm", [
    (0b001, 2, FuOp.CSR_WRITE, 0),
    (0b010, 2, FuOp.CSR_SET, 0),
    (0b010, 0, FuOp.CSR_READ, 0),
    (0b011, 2, FuOp.CSR_CLEAR, 0),
    (0b011, 0, FuOp.CSR_READ, 0),
    (0b101, 7, FuOp.CSR_WRITE, 1),
    (0b110, 7, FuOp.CSR_SET, 1),
    (0b111, 0, FuOp.CSR_READ, 1),
])
def test_csr_access(funct3, rs1, op, zimm):
    out = decode(i_type(SYSTEM, 1, funct3, rs1, 0x300))
    assert out['fu'] == FuType.CSR
    assert out['op'] == op
    assert out['use_zimm'] == zimm
    assert out['result'] == 0x300
    assert out['illegal'] == 0

def test_compressed_needs_rvc():
    inputs = dict(is_compressed = 1, compressed_instr = 0x0505)
    word = i_type(OP_IMM, 10, 0b000, 10, 1)  # c.addi a0, 1
    on = decode(word, **inputs)
    off = decode(word, DecoderConfig(rvc = False), **inputs)
    assert on['is_compressed'] == 1
    assert on['illegal'] == 0
    assert on['orig_instr'] == 0x0505
    assert off['op'] == FuOp.ADD
    assert off['illegal'] == 1
    assert off['tval'] == 0x0505

def test_expander_rejection_is_illegal():
    out = decode(i_type(OP_IMM, 1, 0b000, 5, 100), is_illegal = 1,
                 is_compressed = 1, compressed_instr = 0x0000)
    assert out['illegal'] == 1
    assert out['cause'] == Cause.ILLEGAL_INSTR

def test_pc_and_prediction_pass_through():
    out = decode(j_type(0, 16), pc = 0x8000_0000,
                 bp__predict_address = 0x8000_0010)
    assert out['pc'] == 0x8000_0000
    assert out['bp_address'] == 0x8000_0010
