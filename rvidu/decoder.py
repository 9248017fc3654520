# Combinational decode logic.

from amaranth import *
from amaranth.lib.wiring import *

from rvidu import mux, oneof
from rvidu.config import DecoderConfig
from rvidu.isa import (Opcode, FuType, FuOp, ImmSel, DecodeContext,
                       DecodeFields, DecodedInstruction, ExceptionRecord,
                       BranchPredict, AccelPayload)
from rvidu.intdecode import (decode_op, decode_op_32, decode_op_imm,
                             decode_op_imm_32, decode_load, decode_store,
                             decode_amo, decode_branch, decode_jal,
                             decode_jalr, decode_lui, decode_auipc,
                             decode_misc_mem, decode_system)
from rvidu.fpdecode import (decode_fp_load, decode_fp_store, decode_fmadd,
                            decode_op_fp, decode_vec_fp, FMADD_OPS)
from rvidu.accel import decode_accel
from rvidu.arbiter import ExceptionArbiter

class ImmediateExtractor(Component):
    """The ImmediateExtractor decodes an instruction word into its various
    immediate formats, and picks one according to an ImmSel.

    Attributes
    ----------
    inst (input): instruction word.
    sel (input): which format to produce on 'value'.
    value (output): selected immediate, sign-extended to XLEN; or for
        ImmSel.RS3, the rs3 register index zero-extended.
    is_imm (output): 'value' is an immediate operand (not for NONE or RS3).
    i (output): I-format immediate.
    s (output): S-format immediate.
    sb (output): B-format immediate.
    u (output): U-format immediate.
    uj (output): J-format immediate.
    """
    def __init__(self, xlen = 64):
        self.xlen = xlen
        super().__init__({
            'inst': In(32),
            'sel': In(ImmSel),
            'value': Out(xlen),
            'is_imm': Out(1),
            'i': Out(xlen),
            's': Out(xlen),
            'sb': Out(xlen),
            'u': Out(xlen),
            'uj': Out(xlen),
        })

    def elaborate(self, platform):
        m = Module()

        x = self.xlen
        inst = self.inst
        sign = inst[31]

        m.d.comb += [
            self.i.eq(Cat(inst[20:31], sign.replicate(x - 11))),
            self.s.eq(Cat(inst[7:12], inst[25:31], sign.replicate(x - 11))),
            self.sb.eq(Cat(Const(0, 1), inst[8:12], inst[25:31], inst[7],
                           sign.replicate(x - 12))),
            self.u.eq(Cat(Const(0, 12), inst[12:32], sign.replicate(x - 32))),
            self.uj.eq(Cat(Const(0, 1), inst[21:31], inst[20], inst[12:20],
                           sign.replicate(x - 20))),
        ]

        sel = self.sel
        m.d.comb += [
            self.value.eq(oneof([
                (sel == ImmSel.I, self.i),
                (sel == ImmSel.S, self.s),
                (sel == ImmSel.SB, self.sb),
                (sel == ImmSel.U, self.u),
                (sel == ImmSel.UJ, self.uj),
                (sel == ImmSel.RS3, inst[27:32]),
            ], default = 0)),
            self.is_imm.eq(
                (sel == ImmSel.I) | (sel == ImmSel.S) | (sel == ImmSel.SB)
                | (sel == ImmSel.U) | (sel == ImmSel.UJ)
            ),
        ]

        return m

class Decoder(Component):
    """The Decoder turns a raw instruction, plus the context it's executing
    in, into a decoded instruction record with its final exception state.

    Decode is a big switch on the major opcode. Each branch picks the
    functional unit, wires up the register fields, picks an operation from
    the function code fields, and raises 'illegal' for anything it doesn't
    recognise or that the current configuration/context doesn't allow. The
    operation is picked regardless of whether the instruction turns out to
    be legal.

    If the offload path (cvxif) is built in, illegal instructions are sent to
    the accelerator unit as OFFLOAD ops instead of trapping. 'illegal' still
    reads high in that case.

    Parameters
    ----------
    config (DecoderConfig): the static capability set.

    Attributes
    ----------
    pc (input): address of the instruction.
    instruction (input): instruction word, already expanded if compressed.
    compressed_instr (input): the original 16-bit form, if compressed.
    is_compressed (input): the instruction came from a 16-bit encoding.
    is_illegal (input): the compressed expander rejected the encoding.
    ex (input): exception attached by fetch, if any.
    bp (input): branch prediction; passed through untouched.
    ctx (input): CSR/privilege/interrupt snapshot, see DecodeContext.

    out (output): the decoded instruction, see DecodedInstruction.
    accel (output): accelerator payload, valid for legal custom-0 ops.
    illegal (output): the instruction is illegal in this context.
    is_control_flow (output): the instruction may redirect the PC.
    orig_instr (output): raw instruction bits as fetched.
    """
    def __init__(self, config = DecoderConfig()):
        self.config = config
        xlen = config.xlen
        super().__init__({
            'pc': In(xlen),
            'instruction': In(32),
            'compressed_instr': In(16),
            'is_compressed': In(1),
            'is_illegal': In(1),
            'ex': In(ExceptionRecord(xlen)),
            'bp': In(BranchPredict(xlen)),
            'ctx': In(DecodeContext),

            'out': Out(DecodedInstruction(xlen)),
            'accel': Out(AccelPayload),
            'illegal': Out(1),
            'is_control_flow': Out(1),
            'orig_instr': Out(32),
        })

    def elaborate(self, platform):
        m = Module()

        cfg = self.config
        inst = self.instruction
        ctx = self.ctx

        m.submodules.imm = imm = ImmediateExtractor(cfg.xlen)
        m.submodules.arb = arb = ExceptionArbiter(cfg)

        d = Signal(DecodeFields)
        acc = Signal(AccelPayload)

        with m.Switch(inst[0:7]):
            with m.Case(Opcode.LOAD):
                decode_load(m, cfg, inst, d)
            with m.Case(Opcode.STORE):
                decode_store(m, cfg, inst, d)
            with m.Case(Opcode.AMO):
                decode_amo(m, cfg, inst, d)
            with m.Case(Opcode.BRANCH):
                decode_branch(m, cfg, inst, d)
            with m.Case(Opcode.JAL):
                decode_jal(m, cfg, inst, d)
            with m.Case(Opcode.JALR):
                decode_jalr(m, cfg, inst, d)
            with m.Case(Opcode.LUI):
                decode_lui(m, cfg, inst, d)
            with m.Case(Opcode.AUIPC):
                decode_auipc(m, cfg, inst, d)
            with m.Case(Opcode.MISC_MEM):
                decode_misc_mem(m, cfg, inst, d)
            with m.Case(Opcode.SYSTEM):
                decode_system(m, cfg, inst, d, ctx)
            with m.Case(Opcode.OP_IMM):
                decode_op_imm(m, cfg, inst, d)
            with m.Case(Opcode.OP_IMM_32):
                decode_op_imm_32(m, cfg, inst, d)
            with m.Case(Opcode.OP):
                # Vectorial FP shares the opcode, marked by funct7[6:5].
                with m.If(inst[30:32] == 0b10):
                    decode_vec_fp(m, cfg, inst, d, ctx)
                with m.Else():
                    decode_op(m, cfg, inst, d)
            with m.Case(Opcode.OP_32):
                decode_op_32(m, cfg, inst, d)
            with m.Case(Opcode.LOAD_FP):
                decode_fp_load(m, cfg, inst, d, ctx)
            with m.Case(Opcode.STORE_FP):
                decode_fp_store(m, cfg, inst, d, ctx)
            with m.Case(*FMADD_OPS.keys()):
                decode_fmadd(m, cfg, inst, d, ctx)
            with m.Case(Opcode.OP_FP):
                decode_op_fp(m, cfg, inst, d, ctx)
            with m.Case(Opcode.CUSTOM0):
                decode_accel(m, cfg, inst, d, acc)
            with m.Default():
                # Includes custom-1, reserved for accelerator arithmetic.
                m.d.comb += d.illegal.eq(1)

        illegal = Signal(1)
        m.d.comb += illegal.eq(d.illegal)
        if not cfg.rvc:
            with m.If(self.is_compressed):
                m.d.comb += illegal.eq(1)

        offload = Signal(1)
        if cfg.cvxif:
            m.d.comb += offload.eq(illegal | self.is_illegal)

        out = self.out
        imm_sel = Signal(ImmSel)

        m.d.comb += [
            out.pc.eq(self.pc),
            out.fu.eq(d.fu),
            out.op.eq(d.op),
            out.rs1.eq(d.rs1),
            out.rs2.eq(d.rs2),
            out.rs3.eq(d.rs3),
            out.rd.eq(d.rd),
            imm_sel.eq(d.imm_sel),
        ]
        # The coprocessor gets first refusal on anything we can't decode. It
        # sees the raw R4-type register fields.
        with m.If(offload):
            m.d.comb += [
                out.fu.eq(FuType.ACCEL),
                out.op.eq(FuOp.OFFLOAD),
                out.rs1.eq(inst[15:20]),
                out.rs2.eq(inst[20:25]),
                out.rs3.eq(inst[27:32]),
                out.rd.eq(inst[7:12]),
                imm_sel.eq(ImmSel.RS3),
            ]

        m.d.comb += [
            imm.inst.eq(inst),
            imm.sel.eq(imm_sel),
            out.result.eq(imm.value),
            out.use_imm.eq(imm.is_imm),
            out.use_pc.eq(d.use_pc),
            out.use_zimm.eq(d.use_zimm),
            out.is_compressed.eq(self.is_compressed),
            out.vfp.eq(d.vfp),
            out.is_control_flow.eq(d.is_control_flow & ~illegal),
            out.bp.eq(self.bp),
        ]

        m.d.comb += [
            self.orig_instr.eq(mux(
                self.is_compressed,
                Cat(self.compressed_instr, Const(0, 16)),
                inst,
            )),

            arb.ex_in.eq(self.ex),
            arb.illegal.eq(illegal),
            arb.upstream_illegal.eq(self.is_illegal),
            arb.offload.eq(offload),
            arb.ecall.eq(d.ecall),
            arb.ebreak.eq(d.ebreak),
            arb.tval.eq(self.orig_instr),
            arb.priv.eq(ctx.priv),
            arb.irq_ctrl.eq(ctx.irq_ctrl),
            arb.irq.eq(ctx.irq),
            arb.debug_req.eq(ctx.debug_req),
            arb.debug_mode.eq(ctx.debug_mode),
            out.ex.eq(arb.ex_out),
        ]

        m.d.comb += [
            self.accel.eq(acc),
            self.accel.valid.eq(acc.valid & ~illegal),
            self.illegal.eq(illegal | self.is_illegal),
            self.is_control_flow.eq(d.is_control_flow & ~illegal),
        ]

        return m
