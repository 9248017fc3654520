# Decode branches for the integer, memory, atomic, control-flow and system
# opcodes.
#
# Each decode_* function is called from inside the matching m.Case of the
# Decoder's opcode switch and drives fields of a DecodeFields view. They only
# ever raise the illegal flag; nothing in here clears it, except SFENCE.VMA,
# which re-judges the "no register operands" rule for the SYSTEM opcode.

from amaranth import *

from rvidu.isa import FuType, FuOp, ImmSel, PrivLevel

# Composite key for switching on Cat(funct3, funct7).
def f73(funct7, funct3):
    return (funct7 << 3) | funct3

def funct73(inst):
    return Cat(inst[12:15], inst[25:32])

# Integer register-register mappings. Each extension is an independent
# partial function over the same {funct7, funct3} key space.
OP_BASE = {
    f73(0b000_0000, 0b000): FuOp.ADD,
    f73(0b010_0000, 0b000): FuOp.SUB,
    f73(0b000_0000, 0b010): FuOp.SLTS,
    f73(0b000_0000, 0b011): FuOp.SLTU,
    f73(0b000_0000, 0b100): FuOp.XORL,
    f73(0b000_0000, 0b110): FuOp.ORL,
    f73(0b000_0000, 0b111): FuOp.ANDL,
    f73(0b000_0000, 0b001): FuOp.SLL,
    f73(0b000_0000, 0b101): FuOp.SRL,
    f73(0b010_0000, 0b101): FuOp.SRA,
}

OP_MULDIV = {
    f73(0b000_0001, 0b000): FuOp.MUL,
    f73(0b000_0001, 0b001): FuOp.MULH,
    f73(0b000_0001, 0b010): FuOp.MULHSU,
    f73(0b000_0001, 0b011): FuOp.MULHU,
    f73(0b000_0001, 0b100): FuOp.DIV,
    f73(0b000_0001, 0b101): FuOp.DIVU,
    f73(0b000_0001, 0b110): FuOp.REM,
    f73(0b000_0001, 0b111): FuOp.REMU,
}

OP_BITMANIP = {
    # logical with negate
    f73(0b010_0000, 0b111): FuOp.ANDN,
    f73(0b010_0000, 0b110): FuOp.ORN,
    f73(0b010_0000, 0b100): FuOp.XNOR,
    # shift and add
    f73(0b001_0000, 0b010): FuOp.SH1ADD,
    f73(0b001_0000, 0b100): FuOp.SH2ADD,
    f73(0b001_0000, 0b110): FuOp.SH3ADD,
    # integer min/max
    f73(0b000_0101, 0b110): FuOp.MAX,
    f73(0b000_0101, 0b111): FuOp.MAXU,
    f73(0b000_0101, 0b100): FuOp.MIN,
    f73(0b000_0101, 0b101): FuOp.MINU,
    # single bit
    f73(0b010_0100, 0b001): FuOp.BCLR,
    f73(0b010_0100, 0b101): FuOp.BEXT,
    f73(0b011_0100, 0b001): FuOp.BINV,
    f73(0b001_0100, 0b001): FuOp.BSET,
    # carry-less multiply
    f73(0b000_0101, 0b001): FuOp.CLMUL,
    f73(0b000_0101, 0b010): FuOp.CLMULR,
    f73(0b000_0101, 0b011): FuOp.CLMULH,
    # rotates
    f73(0b011_0000, 0b001): FuOp.ROL,
    f73(0b011_0000, 0b101): FuOp.ROR,
}

OP_ZICOND = {
    f73(0b000_0111, 0b101): FuOp.CZERO_EQZ,
    f73(0b000_0111, 0b111): FuOp.CZERO_NEZ,
}

OP32_BASE = {
    f73(0b000_0000, 0b000): FuOp.ADDW,
    f73(0b010_0000, 0b000): FuOp.SUBW,
    f73(0b000_0000, 0b001): FuOp.SLLW,
    f73(0b000_0000, 0b101): FuOp.SRLW,
    f73(0b010_0000, 0b101): FuOp.SRAW,
}

OP32_MULDIV = {
    f73(0b000_0001, 0b000): FuOp.MULW,
    f73(0b000_0001, 0b100): FuOp.DIVW,
    f73(0b000_0001, 0b101): FuOp.DIVUW,
    f73(0b000_0001, 0b110): FuOp.REMW,
    f73(0b000_0001, 0b111): FuOp.REMUW,
}

OP32_BITMANIP = {
    f73(0b000_0100, 0b000): FuOp.ADDUW,
    f73(0b001_0000, 0b010): FuOp.SH1ADDUW,
    f73(0b001_0000, 0b100): FuOp.SH2ADDUW,
    f73(0b001_0000, 0b110): FuOp.SH3ADDUW,
    f73(0b011_0000, 0b001): FuOp.ROLW,
    f73(0b011_0000, 0b101): FuOp.RORW,
}

ZEXTH_KEY = f73(0b000_0100, 0b100)

LOADS = {
    0b000: FuOp.LB,
    0b001: FuOp.LH,
    0b010: FuOp.LW,
    0b100: FuOp.LBU,
    0b101: FuOp.LHU,
}
LOADS_64 = {
    0b011: FuOp.LD,
    0b110: FuOp.LWU,
}

STORES = {
    0b000: FuOp.SB,
    0b001: FuOp.SH,
    0b010: FuOp.SW,
}
STORES_64 = {
    0b011: FuOp.SD,
}

BRANCHES = {
    0b000: FuOp.EQ,
    0b001: FuOp.NE,
    0b100: FuOp.LTS,
    0b101: FuOp.GES,
    0b110: FuOp.LTU,
    0b111: FuOp.GEU,
}

# Keyed by funct5 (inst[31:27]); one op per data width.
AMOS = {
    0x00: (FuOp.AMO_ADDW, FuOp.AMO_ADDD),
    0x01: (FuOp.AMO_SWAPW, FuOp.AMO_SWAPD),
    0x02: (FuOp.AMO_LRW, FuOp.AMO_LRD),
    0x03: (FuOp.AMO_SCW, FuOp.AMO_SCD),
    0x04: (FuOp.AMO_XORW, FuOp.AMO_XORD),
    0x08: (FuOp.AMO_ORW, FuOp.AMO_ORD),
    0x0C: (FuOp.AMO_ANDW, FuOp.AMO_ANDD),
    0x10: (FuOp.AMO_MINW, FuOp.AMO_MIND),
    0x14: (FuOp.AMO_MAXW, FuOp.AMO_MAXD),
    0x18: (FuOp.AMO_MINWU, FuOp.AMO_MINDU),
    0x1C: (FuOp.AMO_MAXWU, FuOp.AMO_MAXDU),
}
AMO_LR = 0x02

def rtype_regs(inst, d):
    return [
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
        d.rd.eq(inst[7:12]),
    ]

def itype_regs(inst, d):
    return [
        d.rs1.eq(inst[15:20]),
        d.rd.eq(inst[7:12]),
    ]

# Emits one m.Case per entry of 'table' (key -> FuOp) and returns a signal
# that is high when one of them matched. The caller must be inside an
# m.Switch. 'extra' statements are added to every matching case.
def _table_cases(m, table, d, claimed, extra = ()):
    for key, op in table.items():
        with m.Case(key):
            m.d.comb += [d.op.eq(op), claimed.eq(1), *extra]

def _op_base(m, cfg, key, d, base, muldiv):
    claimed = Signal()
    mul_hit = Signal()
    with m.Switch(key):
        _table_cases(m, base, d, claimed)
        _table_cases(m, muldiv, d, mul_hit, [d.fu.eq(FuType.MULT)])
    if cfg.rvm:
        return claimed | mul_hit
    return claimed

def _op_partial(m, key, d, table):
    claimed = Signal()
    with m.Switch(key):
        _table_cases(m, table, d, claimed)
    return claimed

def _combine(cfg, base, bitmanip, zicond = None):
    # A code combination is legal if any configured mapping claims it.
    claims = [base]
    if cfg.rvb:
        claims.append(bitmanip)
    if cfg.zicond and zicond is not None:
        claims.append(zicond)
    return ~Cat(*claims).any()

def decode_op(m, cfg, inst, d):
    """Integer register-register (OP)."""
    m.d.comb += [d.fu.eq(FuType.ALU), *rtype_regs(inst, d)]

    key = funct73(inst)
    base = _op_base(m, cfg, key, d, OP_BASE, OP_MULDIV)
    bitmanip = _op_partial(m, key, d, OP_BITMANIP)
    zicond = _op_partial(m, key, d, OP_ZICOND)

    # The RV32 encoding of ZEXT.H lives here; on RV64 it moves to OP-32.
    zexth = Signal()
    with m.If((key == ZEXTH_KEY) & (inst[20:25] == 0)):
        m.d.comb += d.op.eq(FuOp.ZEXTH)
        if cfg.xlen == 32:
            m.d.comb += zexth.eq(1)

    m.d.comb += d.illegal.eq(_combine(cfg, base, bitmanip | zexth, zicond))

def decode_op_32(m, cfg, inst, d):
    """RV64-only word register-register (OP-32)."""
    m.d.comb += [d.fu.eq(FuType.ALU), *rtype_regs(inst, d)]

    key = funct73(inst)
    base = _op_base(m, cfg, key, d, OP32_BASE, OP32_MULDIV)
    bitmanip = _op_partial(m, key, d, OP32_BITMANIP)

    zexth = Signal()
    with m.If((key == ZEXTH_KEY) & (inst[20:25] == 0)):
        m.d.comb += [d.op.eq(FuOp.ZEXTH), zexth.eq(1)]

    m.d.comb += d.illegal.eq(_combine(cfg, base, bitmanip | zexth))
    if cfg.xlen == 32:
        m.d.comb += d.illegal.eq(1)

def _shamt_ok(cfg, inst):
    # On RV32, shamt[5] must be zero.
    if cfg.xlen == 32:
        return inst[25] == 0
    return Const(1)

def decode_op_imm(m, cfg, inst, d):
    """Integer register-immediate (OP-IMM)."""
    m.d.comb += [
        d.fu.eq(FuType.ALU),
        d.imm_sel.eq(ImmSel.I),
        *itype_regs(inst, d),
    ]

    base = Signal()
    bitmanip = Signal()
    shamt_ok = _shamt_ok(cfg, inst)
    funct6 = inst[26:32]
    funct12 = inst[20:32]

    with m.Switch(inst[12:15]):
        for funct3, op in [
            (0b000, FuOp.ADD), (0b010, FuOp.SLTS), (0b011, FuOp.SLTU),
            (0b100, FuOp.XORL), (0b110, FuOp.ORL), (0b111, FuOp.ANDL),
        ]:
            with m.Case(funct3):
                m.d.comb += [d.op.eq(op), base.eq(1)]

        with m.Case(0b001):
            with m.If(funct6 == 0):
                m.d.comb += [d.op.eq(FuOp.SLL), base.eq(shamt_ok)]
            # Zbs and Zbb unary ops share this funct3.
            for f6, op in [
                (0b010010, FuOp.BCLRI),
                (0b011010, FuOp.BINVI),
                (0b001010, FuOp.BSETI),
            ]:
                with m.If(funct6 == f6):
                    m.d.comb += [d.op.eq(op), bitmanip.eq(shamt_ok)]
            for f12, op in [
                (0x600, FuOp.CLZ),
                (0x601, FuOp.CTZ),
                (0x602, FuOp.CPOP),
                (0x604, FuOp.SEXTB),
                (0x605, FuOp.SEXTH),
            ]:
                with m.If(funct12 == f12):
                    m.d.comb += [d.op.eq(op), bitmanip.eq(1)]

        with m.Case(0b101):
            with m.If(funct6 == 0):
                m.d.comb += [d.op.eq(FuOp.SRL), base.eq(shamt_ok)]
            with m.Elif(funct6 == 0b010000):
                m.d.comb += [d.op.eq(FuOp.SRA), base.eq(shamt_ok)]
            with m.Elif(funct6 == 0b010010):
                m.d.comb += [d.op.eq(FuOp.BEXTI), bitmanip.eq(shamt_ok)]
            with m.Elif(funct6 == 0b011000):
                m.d.comb += [d.op.eq(FuOp.RORI), bitmanip.eq(shamt_ok)]
            rev8 = 0x698 if cfg.xlen == 32 else 0x6b8
            with m.If(funct12 == 0x287):
                m.d.comb += [d.op.eq(FuOp.ORCB), bitmanip.eq(1)]
            with m.Elif(funct12 == rev8):
                m.d.comb += [d.op.eq(FuOp.REV8), bitmanip.eq(1)]

    m.d.comb += d.illegal.eq(_combine(cfg, base, bitmanip))

def decode_op_imm_32(m, cfg, inst, d):
    """RV64-only word register-immediate (OP-IMM-32)."""
    m.d.comb += [
        d.fu.eq(FuType.ALU),
        d.imm_sel.eq(ImmSel.I),
        *itype_regs(inst, d),
    ]

    base = Signal()
    bitmanip = Signal()
    funct7 = inst[25:32]
    funct12 = inst[20:32]

    with m.Switch(inst[12:15]):
        with m.Case(0b000):
            m.d.comb += [d.op.eq(FuOp.ADDW), base.eq(1)]
        with m.Case(0b001):
            with m.If(funct7 == 0):
                m.d.comb += [d.op.eq(FuOp.SLLW), base.eq(1)]
            with m.Elif(inst[26:32] == 0b000010):
                m.d.comb += [d.op.eq(FuOp.SLLIUW), bitmanip.eq(1)]
            for f12, op in [
                (0x600, FuOp.CLZW),
                (0x601, FuOp.CTZW),
                (0x602, FuOp.CPOPW),
            ]:
                with m.If(funct12 == f12):
                    m.d.comb += [d.op.eq(op), bitmanip.eq(1)]
        with m.Case(0b101):
            with m.If(funct7 == 0):
                m.d.comb += [d.op.eq(FuOp.SRLW), base.eq(1)]
            with m.Elif(funct7 == 0b010_0000):
                m.d.comb += [d.op.eq(FuOp.SRAW), base.eq(1)]
            with m.Elif(funct7 == 0b011_0000):
                m.d.comb += [d.op.eq(FuOp.RORIW), bitmanip.eq(1)]

    m.d.comb += d.illegal.eq(_combine(cfg, base, bitmanip))
    if cfg.xlen == 32:
        m.d.comb += d.illegal.eq(1)

def decode_load(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.LOAD),
        d.imm_sel.eq(ImmSel.I),
        *itype_regs(inst, d),
    ]
    _sized(m, cfg, inst, d, LOADS, LOADS_64)

def decode_store(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.STORE),
        d.imm_sel.eq(ImmSel.S),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
    ]
    _sized(m, cfg, inst, d, STORES, STORES_64)

# Picks a memory op by funct3. Doubleword (and LWU) encodings are recognised
# on RV32 so the op is still reported, but they're illegal there.
def _sized(m, cfg, inst, d, table, table_64):
    with m.Switch(inst[12:15]):
        for funct3, op in table.items():
            with m.Case(funct3):
                m.d.comb += d.op.eq(op)
        for funct3, op in table_64.items():
            with m.Case(funct3):
                m.d.comb += d.op.eq(op)
                if cfg.xlen == 32:
                    m.d.comb += d.illegal.eq(1)
        with m.Default():
            m.d.comb += d.illegal.eq(1)

def decode_amo(m, cfg, inst, d):
    m.d.comb += [d.fu.eq(FuType.STORE), *rtype_regs(inst, d)]

    with m.Switch(inst[12:15]):
        with m.Case(0b010):
            _amo_ops(m, inst, d, 0)
        with m.Case(0b011):
            _amo_ops(m, inst, d, 1)
            if cfg.xlen == 32:
                m.d.comb += d.illegal.eq(1)
        with m.Default():
            m.d.comb += d.illegal.eq(1)

    if not cfg.rva:
        m.d.comb += d.illegal.eq(1)

def _amo_ops(m, inst, d, width):
    with m.Switch(inst[27:32]):
        for funct5, ops in AMOS.items():
            with m.Case(funct5):
                m.d.comb += d.op.eq(ops[width])
                if funct5 == AMO_LR:
                    # LR has no data operand; rs2 must be zero.
                    with m.If(inst[20:25] != 0):
                        m.d.comb += d.illegal.eq(1)
        with m.Default():
            m.d.comb += d.illegal.eq(1)

def decode_branch(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.CTRL_FLOW),
        d.imm_sel.eq(ImmSel.SB),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
        d.is_control_flow.eq(1),
    ]
    with m.Switch(inst[12:15]):
        for funct3, op in BRANCHES.items():
            with m.Case(funct3):
                m.d.comb += d.op.eq(op)
        with m.Default():
            m.d.comb += [d.illegal.eq(1), d.is_control_flow.eq(0)]

def decode_jal(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.CTRL_FLOW),
        d.op.eq(FuOp.JAL),
        d.imm_sel.eq(ImmSel.UJ),
        d.rd.eq(inst[7:12]),
        d.is_control_flow.eq(1),
    ]

def decode_jalr(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.CTRL_FLOW),
        d.op.eq(FuOp.JALR),
        d.imm_sel.eq(ImmSel.I),
        *itype_regs(inst, d),
        d.is_control_flow.eq(1),
    ]
    with m.If(inst[12:15] != 0):
        m.d.comb += d.illegal.eq(1)

def decode_lui(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.ALU),
        d.op.eq(FuOp.ADD),
        d.imm_sel.eq(ImmSel.U),
        d.rd.eq(inst[7:12]),
    ]

def decode_auipc(m, cfg, inst, d):
    m.d.comb += [
        d.fu.eq(FuType.ALU),
        d.op.eq(FuOp.ADD),
        d.imm_sel.eq(ImmSel.U),
        d.use_pc.eq(1),
        d.rd.eq(inst[7:12]),
    ]

def decode_misc_mem(m, cfg, inst, d):
    m.d.comb += d.fu.eq(FuType.CSR)
    with m.Switch(inst[12:15]):
        with m.Case(0b000):
            m.d.comb += d.op.eq(FuOp.FENCE)
        with m.Case(0b001):
            m.d.comb += d.op.eq(FuOp.FENCE_I)
        with m.Default():
            m.d.comb += d.illegal.eq(1)

def decode_system(m, cfg, inst, d, ctx):
    """SYSTEM: environment calls, xRET, WFI, SFENCE.VMA and CSR accesses.

    Privilege checks are made against the context snapshot:

    - SRET needs S-mode support, is illegal from U-mode and traps from S-mode
      when mstatus.TSR is set.
    - MRET is only legal in M-mode.
    - DRET is only legal in debug mode.
    - WFI is illegal from U-mode and traps from S-mode when mstatus.TW is set.
    - SFENCE.VMA is illegal from U-mode and traps from S-mode when
      mstatus.TVM is set.
    """
    m.d.comb += [d.fu.eq(FuType.CSR), *itype_regs(inst, d)]

    priv = ctx.priv
    rs1 = inst[15:20]
    rd = inst[7:12]

    with m.Switch(inst[12:15]):
        with m.Case(0b000):
            with m.If((rs1 != 0) | (rd != 0)):
                m.d.comb += d.illegal.eq(1)

            with m.Switch(inst[20:32]):
                with m.Case(0x000):
                    m.d.comb += [d.op.eq(FuOp.ECALL), d.ecall.eq(1)]
                with m.Case(0x001):
                    m.d.comb += [d.op.eq(FuOp.EBREAK), d.ebreak.eq(1)]
                with m.Case(0x102):
                    m.d.comb += d.op.eq(FuOp.SRET)
                    if cfg.rvs:
                        with m.If((priv == PrivLevel.U)
                                  | ((priv == PrivLevel.S) & ctx.tsr)):
                            m.d.comb += d.illegal.eq(1)
                    else:
                        m.d.comb += d.illegal.eq(1)
                with m.Case(0x302):
                    m.d.comb += d.op.eq(FuOp.MRET)
                    with m.If(priv != PrivLevel.M):
                        m.d.comb += d.illegal.eq(1)
                with m.Case(0x7b2):
                    m.d.comb += d.op.eq(FuOp.DRET)
                    if cfg.debug:
                        with m.If(~ctx.debug_mode):
                            m.d.comb += d.illegal.eq(1)
                    else:
                        m.d.comb += d.illegal.eq(1)
                with m.Case(0x105):
                    m.d.comb += d.op.eq(FuOp.WFI)
                    with m.If(priv == PrivLevel.U):
                        m.d.comb += d.illegal.eq(1)
                    if cfg.rvs:
                        with m.If((priv == PrivLevel.S) & ctx.tw):
                            m.d.comb += d.illegal.eq(1)
                with m.Default():
                    with m.If(inst[25:32] == 0b000_1001):
                        m.d.comb += [
                            d.op.eq(FuOp.SFENCE_VMA),
                            d.rs2.eq(inst[20:25]),
                        ]
                        # rs1 and rs2 are real operands here, so this
                        # replaces the check above.
                        trapped = (priv == PrivLevel.U) | (
                            (priv == PrivLevel.S) & ctx.tvm)
                        m.d.comb += d.illegal.eq((rd != 0) | trapped)
                        if not cfg.rvs:
                            m.d.comb += d.illegal.eq(1)
                    with m.Else():
                        m.d.comb += d.illegal.eq(1)

        # CSR accesses. The immediate forms carry a 5-bit zero-extended
        # immediate in the rs1 field.
        with m.Case(0b001, 0b101):
            m.d.comb += [
                d.op.eq(FuOp.CSR_WRITE),
                d.imm_sel.eq(ImmSel.I),
                d.use_zimm.eq(inst[14]),
            ]
        # Set/clear with rs1 == x0 (or a zero immediate) never writes.
        with m.Case(0b010, 0b110):
            m.d.comb += [
                d.op.eq(FuOp.CSR_SET),
                d.imm_sel.eq(ImmSel.I),
                d.use_zimm.eq(inst[14]),
            ]
            with m.If(rs1 == 0):
                m.d.comb += d.op.eq(FuOp.CSR_READ)
        with m.Case(0b011, 0b111):
            m.d.comb += [
                d.op.eq(FuOp.CSR_CLEAR),
                d.imm_sel.eq(ImmSel.I),
                d.use_zimm.eq(inst[14]),
            ]
            with m.If(rs1 == 0):
                m.d.comb += d.op.eq(FuOp.CSR_READ)
        with m.Default():
            m.d.comb += d.illegal.eq(1)
