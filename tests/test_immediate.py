import pytest
from amaranth.sim import Simulator

from rvidu.decoder import ImmediateExtractor
from rvidu.isa import ImmSel

from tests.support import i_type, s_type, b_type, u_type, j_type, r4_type

def extract(word, sel, xlen = 64):
    dut = ImmediateExtractor(xlen)
    out = {}

    async def bench(ctx):
        ctx.set(dut.inst, word)
        ctx.set(dut.sel, sel)
        out['value'] = ctx.get(dut.value)
        out['is_imm'] = ctx.get(dut.is_imm)

    sim = Simulator(dut)
    sim.add_testbench(bench)
    sim.run()
    return out

def bits(value, xlen = 64):
    return value & ((1 << xlen) - 1)

@pytest.mark.parametrize("imm", [0, 100, 2047, -1, -2048])
def test_i_format(imm):
    out = extract(i_type(0b0010011, 1, 0, 5, imm), ImmSel.I)
    assert out['value'] == bits(imm)
    assert out['is_imm'] == 1

@pytest.mark.parametrize("imm", [0, 8, 2047, -8, -2048])
def test_s_format(imm):
    out = extract(s_type(0b0100011, 0b010, 2, 3, imm), ImmSel.S)
    assert out['value'] == bits(imm)

@pytest.mark.parametrize("offset", [0, 4, 4094, -2, -4096])
def test_sb_format(offset):
    out = extract(b_type(0b000, 1, 2, offset), ImmSel.SB)
    assert out['value'] == bits(offset)

@pytest.mark.parametrize("offset", [0, 2, 0xFFFFE, -2, -0x100000])
def test_uj_format(offset):
    out = extract(j_type(1, offset), ImmSel.UJ)
    assert out['value'] == bits(offset)

def test_u_format_sign_extends_on_rv64():
    word = u_type(0b0110111, 1, 0x80000000)
    assert extract(word, ImmSel.U)['value'] == 0xFFFF_FFFF_8000_0000
    assert extract(word, ImmSel.U, xlen = 32)['value'] == 0x8000_0000

def test_u_format_low_bits_clear():
    out = extract(u_type(0b0010111, 1, 0x12345000), ImmSel.U)
    assert out['value'] == 0x12345000

def test_branch_and_jump_targets_are_even():
    # Every bit set, including the ones that would land in bit 0 if the
    # formats were extracted wrongly.
    for sel in [ImmSel.SB, ImmSel.UJ]:
        value = extract(0xFFFF_FFFF, sel)['value']
        assert value & 1 == 0
        assert value >> 63 == 1

@pytest.mark.parametrize("word", [0x0000_0000, 0xFFFF_FFFF, 0xA5A5_5A5A,
                                  0x8000_0001, 0x7FFF_FFFE])
def test_source_bits_recoverable(word):
    i = extract(word, ImmSel.I)['value']
    assert i & 0xFFF == word >> 20
    s = extract(word, ImmSel.S)['value']
    assert s & 0x1F == (word >> 7) & 0x1F
    assert (s >> 5) & 0x7F == word >> 25
    sb = extract(word, ImmSel.SB)['value']
    assert (sb >> 1) & 0xF == (word >> 8) & 0xF
    assert (sb >> 5) & 0x3F == (word >> 25) & 0x3F
    assert (sb >> 11) & 1 == (word >> 7) & 1
    assert (sb >> 12) & 1 == word >> 31
    u = extract(word, ImmSel.U)['value']
    assert (u >> 12) & 0xFFFFF == word >> 12
    uj = extract(word, ImmSel.UJ)['value']
    assert (uj >> 1) & 0x3FF == (word >> 21) & 0x3FF
    assert (uj >> 11) & 1 == (word >> 20) & 1
    assert (uj >> 12) & 0xFF == (word >> 12) & 0xFF
    assert (uj >> 20) & 1 == word >> 31

def test_rs3_is_register_index_not_immediate():
    word = r4_type(0b1000011, 1, 0, 2, 3, 0, 31)
    out = extract(word, ImmSel.RS3)
    assert out['value'] == 31
    assert out['is_imm'] == 0

def test_none_selects_nothing():
    out = extract(0xFFFF_FFFF, ImmSel.NONE)
    assert out['value'] == 0
    assert out['is_imm'] == 0
