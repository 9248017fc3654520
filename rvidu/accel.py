# Custom stream/tensor accelerator: decode of the custom-0 opcode space, and
# the request/response interface to the accelerator itself.
#
# custom-0 encoding:
#
#   31:27 descriptor payload    26:25 descriptor    24:20 rs2    19:15 rs1
#   14 memory mode              13:12 phase         11:7 vd
#
# Descriptor payloads:
#
#   ADDR_EXT      31:27 rs3, the high word of the stream base address.
#                 Legal in START and APPEND.
#   TENSOR_MODE   31:29 vdim (dimensions - 1), 28:27 element width.
#                 Legal in START.
#   TENSOR_INDEX  31:29 predicate register, 28:27 must be zero.
#                 Legal in APPEND and END.
#
# custom-1 is reserved for the accelerator's vector/predicate arithmetic,
# compare and memory ops. Those aren't decoded yet; the Decoder treats the
# whole opcode as illegal (or offloads it) so the space stays free.

from amaranth import *
from amaranth.lib.wiring import *
from amaranth.lib.data import StructLayout

from rvidu import StreamSig
from rvidu.isa import (FuType, FuOp, ImmSel, AccelPhase, AccelDesc,
                       AccelMemMode)

def decode_accel(m, cfg, inst, d, acc):
    """Fills in 'd' and the accelerator payload view 'acc' for a custom-0
    instruction."""
    phase = acc.phase
    m.d.comb += [
        d.fu.eq(FuType.ACCEL),
        d.rs1.eq(inst[15:20]),
        d.rs2.eq(inst[20:25]),

        acc.valid.eq(1),
        acc.phase.as_value().eq(inst[12:14]),
        acc.mem_mode.as_value().eq(inst[14]),
        acc.desc.as_value().eq(inst[25:27]),
        acc.vd.eq(inst[7:12]),
    ]

    phase_ok = Signal()

    with m.Switch(inst[25:27]):
        with m.Case(AccelDesc.ADDR_EXT):
            m.d.comb += [
                d.op.eq(FuOp.ACCEL_ADDR_EXT),
                d.rs3.eq(inst[27:32]),
                d.imm_sel.eq(ImmSel.RS3),
                acc.rs3.eq(inst[27:32]),
                phase_ok.eq((phase == AccelPhase.START)
                            | (phase == AccelPhase.APPEND)),
            ]
        with m.Case(AccelDesc.TENSOR_MODE):
            m.d.comb += [
                d.op.eq(FuOp.ACCEL_TENSOR_MODE),
                acc.elem_width.as_value().eq(inst[27:29]),
                acc.vdim.eq(inst[29:32]),
                phase_ok.eq(phase == AccelPhase.START),
            ]
        with m.Case(AccelDesc.TENSOR_INDEX):
            m.d.comb += [
                d.op.eq(FuOp.ACCEL_TENSOR_INDEX),
                acc.pd.eq(inst[29:32]),
                phase_ok.eq(((phase == AccelPhase.APPEND)
                             | (phase == AccelPhase.END))
                            & (inst[27:29] == 0)),
            ]
        with m.Default():
            pass

    m.d.comb += d.illegal.eq(~phase_ok)
    if not cfg.accel:
        m.d.comb += d.illegal.eq(1)

def AccelRequest(xlen = 64, id_width = 4):
    return StructLayout({
        'id': unsigned(id_width),
        'op': FuOp,
        'mem_mode': AccelMemMode,
        'instr': unsigned(32),
        'rs1': unsigned(xlen),
        'rs2': unsigned(xlen),
        'rs3': unsigned(xlen),
    })

def AccelResponse(xlen = 64, id_width = 4):
    return StructLayout({
        'id': unsigned(id_width),
        'result': unsigned(xlen),
        'error': unsigned(1),
        'load_done': unsigned(1),
        'store_done': unsigned(1),
        'fflags_valid': unsigned(1),
    })

class AccelStub(Component):
    """Stand-in for the accelerator / coprocessor.

    It takes one request at a time: req.ready is only high while idle, and
    once a request is accepted the response is held valid until the caller
    takes it.

    Descriptor ops answer with rs1 + rs2 (the stream address) and report a
    completed load or store according to the memory mode. Anything else,
    including offloaded instructions, is answered with error set, since the
    stub implements no extension instructions.

    Attributes
    ----------
    req (input stream): requests from the issue logic.
    resp (output stream): responses.
    busy (output): a request is outstanding.
    """
    def __init__(self, *, xlen = 64, id_width = 4):
        self.xlen = xlen
        self.id_width = id_width
        super().__init__({
            'req': In(StreamSig(AccelRequest(xlen, id_width))),
            'resp': Out(StreamSig(AccelResponse(xlen, id_width))),
            'busy': Out(1),
        })

    def elaborate(self, platform):
        m = Module()

        busy = Signal(1)
        resp = Signal(AccelResponse(self.xlen, self.id_width))

        req = self.req.payload
        is_descriptor = (
            (req.op == FuOp.ACCEL_ADDR_EXT)
            | (req.op == FuOp.ACCEL_TENSOR_MODE)
            | (req.op == FuOp.ACCEL_TENSOR_INDEX)
        )
        is_store = req.mem_mode == AccelMemMode.STORE

        m.d.comb += [
            self.req.ready.eq(~busy),
            self.resp.valid.eq(busy),
            self.resp.payload.eq(resp),
            self.busy.eq(busy),
        ]

        with m.If(self.req.valid & ~busy):
            m.d.sync += [
                busy.eq(1),
                resp.id.eq(req.id),
                resp.result.eq(req.rs1 + req.rs2),
                resp.error.eq(~is_descriptor),
                resp.load_done.eq(is_descriptor & ~is_store),
                resp.store_done.eq(is_descriptor & is_store),
                resp.fflags_valid.eq(0),
            ]

        with m.If(busy & self.resp.ready):
            m.d.sync += busy.eq(0)

        return m
