# Multi-ported register file: the storage behind the decoder's register
# index fields. Used for the integer file (x0 reads zero) and the
# accelerator predicate file (p0 reads all ones).

from amaranth import *
from amaranth.lib.wiring import *

from rvidu import AlwaysReady, mux

def RegWrite(addrbits = 5, width = 64):
    return Signature({
        'reg': Out(addrbits),
        'value': Out(width),
    })

def RegRead(addrbits = 5, width = 64):
    return Signature({
        'addr': Out(addrbits),
        'data': In(width),
    })

class RegFile(Component):
    """Register file with combinational read ports and registered write
    ports.

    A read returns the stored value in the same cycle the address is
    presented. A write takes effect on the following cycle. If several write
    ports name the same register in one cycle, the highest-numbered port wins.

    Parameters
    ----------
    width (int): bits per register.
    depth (int): number of registers.
    read_ports (int): number of read ports.
    write_ports (int): number of write ports.
    hardwired (tuple or None): (index, value) of a register that always reads
        'value' and ignores writes. Defaults to x0 = 0.

    Attributes
    ----------
    read (list of ports): read[i].addr in, read[i].data out.
    write (list of ports): write commands, applied if valid.
    """
    def __init__(self, *,
                 width = 64,
                 depth = 32,
                 read_ports = 2,
                 write_ports = 1,
                 hardwired = (0, 0)):
        assert read_ports > 0, "register file needs a read port"
        assert write_ports > 0, "register file needs a write port"
        if hardwired is not None:
            index, value = hardwired
            assert 0 <= index < depth, \
                    f"hardwired register {index} outside file of {depth}"
            assert value >> width == 0, \
                    f"hardwired value {value:#x} wider than {width} bits"

        self.width = width
        self.depth = depth
        self.hardwired = hardwired
        addrbits = (depth - 1).bit_length()

        super().__init__({
            'read': In(RegRead(addrbits, width)).array(read_ports),
            'write': In(AlwaysReady(RegWrite(addrbits, width))).array(
                write_ports),
        })

    def elaborate(self, platform):
        m = Module()

        regs = Array(Signal(self.width, name = f"r{n}")
                     for n in range(self.depth))

        for port in self.write:
            with m.If(port.valid):
                m.d.sync += regs[port.payload.reg].eq(port.payload.value)

        if self.hardwired is not None:
            index, value = self.hardwired
            # Overrides any write to the hardwired register.
            m.d.sync += regs[index].eq(value)

        for port in self.read:
            data = regs[port.addr]
            if self.hardwired is not None:
                index, value = self.hardwired
                data = mux(port.addr == index, Const(value, self.width), data)
            m.d.comb += port.data.eq(data)

        return m
