# Picks the one exception, if any, that goes with a decoded instruction.

from amaranth import *
from amaranth.lib.wiring import *

from rvidu.isa import (Cause, PrivLevel, IrqCtrl, ExceptionRecord, S_SW_IRQ,
                       M_SW_IRQ, S_TIMER_IRQ, M_TIMER_IRQ, S_EXT_IRQ,
                       M_EXT_IRQ)

class ExceptionArbiter(Component):
    """The ExceptionArbiter merges the exception state from earlier stages
    with what decode found, plus pending interrupts and debug requests.

    Precedence, highest first:

    1. A debug request while not in debug mode.
    2. An exception that was already valid on the way in. Earlier stages are
       earlier in program order, so we never overwrite theirs.
    3. Illegal instruction, unless the offload path is absorbing it.
    4. Environment call, with the cause chosen by the current privilege.
    5. Breakpoint.
    6. Interrupts, but only if none of 3-5 fired.

    Interrupt sources are checked in a fixed order and the last one that is
    both pending and enabled wins, so machine-level interrupts beat
    supervisor-level ones.

    Attributes
    ----------
    ex_in (input): exception record from earlier stages.
    illegal (input): decode found the instruction illegal.
    upstream_illegal (input): the compressed expander found it illegal.
    offload (input): illegal instructions go to the coprocessor instead.
    ecall, ebreak (input): decode found ECALL/EBREAK.
    tval (input): raw instruction bits, zero-extended.
    priv, irq_ctrl, irq, debug_req, debug_mode (input): context.
    ex_out (output): the final exception record.
    """
    def __init__(self, config):
        self.config = config
        xlen = config.xlen
        super().__init__({
            'ex_in': In(ExceptionRecord(xlen)),
            'illegal': In(1),
            'upstream_illegal': In(1),
            'offload': In(1),
            'ecall': In(1),
            'ebreak': In(1),
            'tval': In(xlen),
            'priv': In(PrivLevel),
            'irq_ctrl': In(IrqCtrl),
            'irq': In(2),
            'debug_req': In(1),
            'debug_mode': In(1),
            'ex_out': Out(ExceptionRecord(xlen)),
        })

    def elaborate(self, platform):
        m = Module()
        cfg = self.config

        ie = self.irq_ctrl.mie
        ip = self.irq_ctrl.mip
        deleg = self.irq_ctrl.mideleg

        # Synchronous exceptions found by this stage.
        sync_exc = Signal(1)
        illegal = self.illegal | self.upstream_illegal

        m.d.comb += self.ex_out.eq(self.ex_in)

        with m.If(~self.ex_in.valid):
            m.d.comb += self.ex_out.tval.eq(self.tval)

            with m.If(illegal):
                m.d.comb += [
                    self.ex_out.cause.eq(Cause.ILLEGAL_INSTR),
                    sync_exc.eq(~self.offload),
                    self.ex_out.valid.eq(~self.offload),
                ]
            with m.Elif(self.ecall):
                m.d.comb += [
                    sync_exc.eq(1),
                    self.ex_out.valid.eq(1),
                ]
                with m.Switch(self.priv):
                    with m.Case(PrivLevel.M):
                        m.d.comb += self.ex_out.cause.eq(Cause.ENV_CALL_MMODE)
                    with m.Case(PrivLevel.S):
                        if cfg.rvs:
                            m.d.comb += self.ex_out.cause.eq(
                                Cause.ENV_CALL_SMODE)
                    with m.Case(PrivLevel.U):
                        m.d.comb += self.ex_out.cause.eq(Cause.ENV_CALL_UMODE)
            with m.Elif(self.ebreak):
                m.d.comb += [
                    sync_exc.eq(1),
                    self.ex_out.valid.eq(1),
                    self.ex_out.cause.eq(Cause.BREAKPOINT),
                ]

            # Interrupt priority encoder: (condition, delegation bit, cause)
            # in increasing priority. Later matches overwrite earlier ones.
            sources = [
                (ie[S_TIMER_IRQ] & ip[S_TIMER_IRQ],
                 deleg[S_TIMER_IRQ], Cause.S_TIMER_INTERRUPT),
                (ie[S_SW_IRQ] & ip[S_SW_IRQ],
                 deleg[S_SW_IRQ], Cause.S_SW_INTERRUPT),
                # The supervisor external pending bit is OR'd with the pin
                # from the interrupt controller.
                (ie[S_EXT_IRQ] & (ip[S_EXT_IRQ] | self.irq[1]),
                 deleg[S_EXT_IRQ], Cause.S_EXT_INTERRUPT),
                (ie[M_TIMER_IRQ] & ip[M_TIMER_IRQ],
                 deleg[M_TIMER_IRQ], Cause.M_TIMER_INTERRUPT),
                (ie[M_SW_IRQ] & ip[M_SW_IRQ],
                 deleg[M_SW_IRQ], Cause.M_SW_INTERRUPT),
                (ie[M_EXT_IRQ] & ip[M_EXT_IRQ],
                 deleg[M_EXT_IRQ], Cause.M_EXT_INTERRUPT),
            ]

            irq_found = Signal(1)
            irq_delegated = Signal(1)
            irq_cause = Signal(Cause)
            for (pending, delegated, cause) in sources:
                with m.If(pending):
                    m.d.comb += [
                        irq_found.eq(1),
                        irq_cause.eq(cause),
                    ]
                    # Without S-mode there's nobody to delegate to.
                    if cfg.rvs:
                        m.d.comb += irq_delegated.eq(delegated)

            # A delegated interrupt is taken below the delegated (S) level,
            # or at S level with SIE set.
            deliver = irq_found & self.irq_ctrl.global_enable & (
                ~irq_delegated
                | (self.priv == PrivLevel.U)
                | ((self.priv == PrivLevel.S) & self.irq_ctrl.sie)
            )

            with m.If(deliver & ~sync_exc):
                m.d.comb += [
                    self.ex_out.valid.eq(1),
                    self.ex_out.cause.eq(irq_cause),
                ]

        if cfg.debug:
            with m.If(self.debug_req & ~self.debug_mode):
                m.d.comb += [
                    self.ex_out.valid.eq(1),
                    self.ex_out.cause.eq(Cause.DEBUG_REQUEST),
                ]

        return m
