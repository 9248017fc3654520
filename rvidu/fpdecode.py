# Floating-point decode: scalar loads/stores, fused multiply-add, OP-FP and
# the vectorial (packed-SIMD over FLEN) sub-family that lives in the OP
# opcode.
#
# The FP field layout is:
#
#   31:27 funct5 / rs3    26:25 fmt    24:20 rs2    19:15 rs1
#   14:12 rm              11:7 rd
#
# and for vectorial ops:
#
#   31:30 = 0b10    29:25 vecfltop    24:20 rs2    19:15 rs1
#   14 repl         13:12 vfmt        11:7 rd

from amaranth import *

from rvidu.isa import FuType, FuOp, ImmSel, XStatus

# fmt field encodings
FMT_S = 0b00
FMT_D = 0b01
FMT_H = 0b10
FMT_B = 0b11

# Dynamic rounding mode; the frm CSR supplies the real one.
RM_DYN = 0b111
# With fmt = H, selects the alternate half-precision format.
RM_ALT = 0b101

def fp_enabled(cfg, ctx):
    """FP instructions are only legal if some FP format is built in and
    software hasn't switched the FP context off."""
    if not cfg.fp_present:
        return Const(0)
    return ctx.fs != XStatus.OFF

def _any_of(value, codes):
    codes = list(codes)
    if not codes:
        return Const(0)
    return Cat(*(value == c for c in codes)).any()

def _scalar_formats(cfg):
    fmts = []
    if cfg.rvf:
        fmts.append(FMT_S)
    if cfg.rvd:
        fmts.append(FMT_D)
    if cfg.xf16 or cfg.xf16alt:
        fmts.append(FMT_H)
    if cfg.xf8:
        fmts.append(FMT_B)
    return fmts

def _vector_formats(cfg):
    fmts = []
    if cfg.rvf_vec:
        fmts.append(0b00)
    if cfg.xf16_vec:
        fmts.append(0b01)
    if cfg.xf16alt_vec:
        fmts.append(0b10)
    if cfg.xf8_vec:
        fmts.append(0b11)
    return fmts

def rounding_mode_illegal(cfg, rm, fmt, frm):
    """Returns an expression that is high when the static rounding mode 'rm'
    can't be honoured.

    RNE/RTZ/RDN/RUP/RMM (0-4) are always fine. 0b101 only means something
    with the alternate half-precision format. DYN defers to frm, which must
    itself hold one of the static modes.
    """
    static_ok = rm <= 0b100
    dyn_ok = (rm == RM_DYN) & (frm <= 0b100)
    if cfg.xf16alt:
        alt_ok = (rm == RM_ALT) & (fmt == FMT_H)
    else:
        alt_ok = Const(0)
    return ~(static_ok | dyn_ok | alt_ok)

def decode_fp_load(m, cfg, inst, d, ctx):
    m.d.comb += [
        d.fu.eq(FuType.LOAD),
        d.imm_sel.eq(ImmSel.I),
        d.rs1.eq(inst[15:20]),
        d.rd.eq(inst[7:12]),
    ]
    _fp_sized(m, cfg, inst, d, [
        (0b000, FuOp.FLB, cfg.xf8),
        (0b001, FuOp.FLH, cfg.xf16 or cfg.xf16alt),
        (0b010, FuOp.FLW, cfg.rvf),
        (0b011, FuOp.FLD, cfg.rvd),
    ])
    with m.If(~fp_enabled(cfg, ctx)):
        m.d.comb += d.illegal.eq(1)

def decode_fp_store(m, cfg, inst, d, ctx):
    m.d.comb += [
        d.fu.eq(FuType.STORE),
        d.imm_sel.eq(ImmSel.S),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
    ]
    _fp_sized(m, cfg, inst, d, [
        (0b000, FuOp.FSB, cfg.xf8),
        (0b001, FuOp.FSH, cfg.xf16 or cfg.xf16alt),
        (0b010, FuOp.FSW, cfg.rvf),
        (0b011, FuOp.FSD, cfg.rvd),
    ])
    with m.If(~fp_enabled(cfg, ctx)):
        m.d.comb += d.illegal.eq(1)

def _fp_sized(m, cfg, inst, d, widths):
    with m.Switch(inst[12:15]):
        for funct3, op, present in widths:
            with m.Case(funct3):
                m.d.comb += d.op.eq(op)
                if not present:
                    m.d.comb += d.illegal.eq(1)
        with m.Default():
            m.d.comb += d.illegal.eq(1)

FMADD_OPS = {
    0b1000011: FuOp.FMADD,
    0b1000111: FuOp.FMSUB,
    0b1001011: FuOp.FNMSUB,
    0b1001111: FuOp.FNMADD,
}

def decode_fmadd(m, cfg, inst, d, ctx):
    """R4-type fused multiply-add. The accumulator register travels in the
    immediate slot."""
    m.d.comb += [
        d.fu.eq(FuType.FPU),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
        d.rs3.eq(inst[27:32]),
        d.rd.eq(inst[7:12]),
        d.imm_sel.eq(ImmSel.RS3),
    ]
    with m.Switch(inst[0:7]):
        for opcode, op in FMADD_OPS.items():
            with m.Case(opcode):
                m.d.comb += d.op.eq(op)

    fmt = inst[25:27]
    with m.If(~_any_of(fmt, _scalar_formats(cfg))
              | rounding_mode_illegal(cfg, inst[12:15], fmt, ctx.frm)
              | ~fp_enabled(cfg, ctx)):
        m.d.comb += d.illegal.eq(1)

def decode_op_fp(m, cfg, inst, d, ctx):
    """Scalar OP-FP."""
    m.d.comb += [
        d.fu.eq(FuType.FPU),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
        d.rd.eq(inst[7:12]),
    ]

    rm = inst[12:15]
    fmt = inst[25:27]
    rs2 = inst[20:25]
    alt = cfg.xf16alt

    # Ops that use the rm field as a sub-opcode don't get a rounding mode
    # check. With alternate half precision, rm[2] selects the alt format, so
    # the legal sub-opcode set is doubled.
    check_rm = Signal()
    def subop_ok(codes):
        codes = list(codes)
        if alt:
            codes += [c | 0b100 for c in codes]
        return _any_of(rm, codes)

    with m.Switch(inst[27:32]):
        for funct5, op in [
            (0b00000, FuOp.FADD),
            (0b00001, FuOp.FSUB),
            (0b00010, FuOp.FMUL),
            (0b00011, FuOp.FDIV),
        ]:
            with m.Case(funct5):
                m.d.comb += [d.op.eq(op), check_rm.eq(1)]

        with m.Case(0b01011):
            m.d.comb += [d.op.eq(FuOp.FSQRT), check_rm.eq(1)]
            with m.If(rs2 != 0):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b00100):
            m.d.comb += d.op.eq(FuOp.FSGNJ)
            with m.If(~subop_ok([0b000, 0b001, 0b010])):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b00101):
            m.d.comb += d.op.eq(FuOp.FMIN_MAX)
            with m.If(~subop_ok([0b000, 0b001])):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b10100):
            m.d.comb += d.op.eq(FuOp.FCMP)
            with m.If(~subop_ok([0b000, 0b001, 0b010])):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b01000):
            # rs2 names the source format.
            m.d.comb += [d.op.eq(FuOp.FCVT_F2F), check_rm.eq(1)]
            src_fmts = []
            if cfg.rvf:
                src_fmts.append(0b000)
            if cfg.rvd:
                src_fmts.append(0b001)
            if cfg.xf16:
                src_fmts.append(0b010)
            if cfg.xf16alt:
                src_fmts.append(0b110)
            if cfg.xf8:
                src_fmts.append(0b011)
            with m.If((rs2[3:5] != 0) | ~_any_of(rs2[0:3], src_fmts)):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b11000, 0b11010):
            # rs2 names the integer type: W, WU, L, LU.
            with m.If(inst[28]):
                m.d.comb += d.op.eq(FuOp.FCVT_I2F)
            with m.Else():
                m.d.comb += d.op.eq(FuOp.FCVT_F2I)
            m.d.comb += check_rm.eq(1)
            with m.If(rs2[2:5] != 0):
                m.d.comb += d.illegal.eq(1)
            if cfg.xlen == 32:
                with m.If(rs2[1]):
                    m.d.comb += d.illegal.eq(1)

        with m.Case(0b11100):
            with m.If(subop_ok([0b000])):
                m.d.comb += d.op.eq(FuOp.FMV_F2X)
                if cfg.xlen == 32:
                    with m.If(fmt == FMT_D):
                        m.d.comb += d.illegal.eq(1)
            with m.Elif(subop_ok([0b001])):
                m.d.comb += d.op.eq(FuOp.FCLASS)
            with m.Else():
                m.d.comb += d.illegal.eq(1)
            with m.If(rs2 != 0):
                m.d.comb += d.illegal.eq(1)

        with m.Case(0b11110):
            m.d.comb += d.op.eq(FuOp.FMV_X2F)
            with m.If(~subop_ok([0b000]) | (rs2 != 0)):
                m.d.comb += d.illegal.eq(1)
            if cfg.xlen == 32:
                with m.If(fmt == FMT_D):
                    m.d.comb += d.illegal.eq(1)

        with m.Default():
            m.d.comb += d.illegal.eq(1)

    with m.If(~_any_of(fmt, _scalar_formats(cfg))):
        m.d.comb += d.illegal.eq(1)
    with m.If(check_rm & rounding_mode_illegal(cfg, rm, fmt, ctx.frm)):
        m.d.comb += d.illegal.eq(1)
    with m.If(~fp_enabled(cfg, ctx)):
        m.d.comb += d.illegal.eq(1)

VEC_ARITH = {
    0b00001: FuOp.FADD,
    0b00010: FuOp.FSUB,
    0b00011: FuOp.FMUL,
    0b00100: FuOp.FDIV,
    0b00101: FuOp.VFMIN,
    0b00110: FuOp.VFMAX,
    0b01101: FuOp.VFSGNJ,
    0b01110: FuOp.VFSGNJN,
    0b01111: FuOp.VFSGNJX,
    0b10000: FuOp.VFEQ,
    0b10001: FuOp.VFNE,
    0b10010: FuOp.VFLT,
    0b10011: FuOp.VFGE,
    0b10100: FuOp.VFLE,
    0b10101: FuOp.VFGT,
}

VEC_FMA = {
    0b01000: FuOp.FMADD,
    0b01001: FuOp.FMSUB,
}

# Cast-and-pack ops: (vecfltop, op, scalar source present?, destination
# vfmts that have a slot for the packed pair). The slots depend only on the
# destination lane count: every vector has lanes a/b, and every format
# narrower than FP32 has c/d as well.
AB_SLOTS = [0b00, 0b01, 0b10, 0b11]
CD_SLOTS = [0b01, 0b10, 0b11]

def _cast_pack(cfg):
    return [
        (0b11000, FuOp.VFCPKAB_S, cfg.rvf, AB_SLOTS),
        (0b11001, FuOp.VFCPKCD_S, cfg.rvf, CD_SLOTS),
        (0b11010, FuOp.VFCPKAB_D, cfg.rvd, AB_SLOTS),
        (0b11011, FuOp.VFCPKCD_D, cfg.rvd, CD_SLOTS),
    ]

def decode_vec_fp(m, cfg, inst, d, ctx):
    """Vectorial FP, found in OP with inst[31:30] == 0b10."""
    m.d.comb += [
        d.fu.eq(FuType.FPU_VEC),
        d.vfp.eq(1),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),
        d.rd.eq(inst[7:12]),
    ]

    repl = inst[14]
    vfmt = inst[12:14]
    rs2 = inst[20:25]
    vec_fmts = _vector_formats(cfg)

    allow_repl = Signal(init = 1)

    with m.Switch(inst[25:30]):
        for vecfltop, op in VEC_ARITH.items():
            with m.Case(vecfltop):
                m.d.comb += d.op.eq(op)

        for vecfltop, op in VEC_FMA.items():
            with m.Case(vecfltop):
                # rd is both accumulator and destination.
                m.d.comb += [d.op.eq(op), d.rs3.eq(inst[7:12])]

        with m.Case(0b00111):
            m.d.comb += [d.op.eq(FuOp.FSQRT), allow_repl.eq(0)]
            with m.If(rs2 != 0):
                m.d.comb += d.illegal.eq(1)

        # Unary ops, selected by rs2.
        with m.Case(0b01100):
            with m.Switch(rs2):
                with m.Case(0b00000):
                    with m.If(repl):
                        m.d.comb += d.op.eq(FuOp.FMV_X2F)
                    with m.Else():
                        m.d.comb += d.op.eq(FuOp.FMV_F2X)
                with m.Case(0b00001):
                    m.d.comb += [d.op.eq(FuOp.FCLASS), allow_repl.eq(0)]
                with m.Case(0b00010):
                    m.d.comb += [d.op.eq(FuOp.FCVT_F2I), allow_repl.eq(0)]
                with m.Case(0b00011):
                    m.d.comb += [d.op.eq(FuOp.FCVT_I2F), allow_repl.eq(0)]
                with m.Case("001--"):
                    # rs2[1:0] names the source vector format.
                    m.d.comb += [d.op.eq(FuOp.FCVT_F2F), d.rs3.eq(inst[7:12])]
                    with m.If(~_any_of(rs2[0:2], vec_fmts)):
                        m.d.comb += d.illegal.eq(1)
                with m.Default():
                    m.d.comb += d.illegal.eq(1)

        for vecfltop, op, src_present, dst_fmts in _cast_pack(cfg):
            with m.Case(vecfltop):
                m.d.comb += [
                    d.op.eq(op),
                    d.rs3.eq(inst[7:12]),
                    allow_repl.eq(0),
                ]
                # The packed pair has to land on slots the destination
                # vector actually has, and the format has to be built in.
                legal = [f for f in dst_fmts if f in vec_fmts]
                with m.If(~_any_of(vfmt, legal)):
                    m.d.comb += d.illegal.eq(1)
                if not src_present:
                    m.d.comb += d.illegal.eq(1)

        with m.Default():
            m.d.comb += d.illegal.eq(1)

    with m.If(~_any_of(vfmt, vec_fmts)):
        m.d.comb += d.illegal.eq(1)
    with m.If(~allow_repl & repl):
        m.d.comb += d.illegal.eq(1)
    with m.If(~fp_enabled(cfg, ctx)):
        m.d.comb += d.illegal.eq(1)
    if not cfg.xfvec:
        m.d.comb += d.illegal.eq(1)
