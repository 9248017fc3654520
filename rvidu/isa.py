# Encodings, closed enumerations and record layouts shared by the decode
# logic and whatever consumes its output.

from amaranth import *
from amaranth.lib.enum import *
from amaranth.lib.data import Struct, StructLayout

class Opcode(Enum, shape = unsigned(7)):
    LOAD = 0b0000011
    LOAD_FP = 0b0000111
    CUSTOM0 = 0b0001011
    MISC_MEM = 0b0001111
    OP_IMM = 0b0010011
    AUIPC = 0b0010111
    OP_IMM_32 = 0b0011011
    STORE = 0b0100011
    STORE_FP = 0b0100111
    CUSTOM1 = 0b0101011
    AMO = 0b0101111
    OP = 0b0110011
    LUI = 0b0110111
    OP_32 = 0b0111011
    MADD = 0b1000011
    MSUB = 0b1000111
    NMSUB = 0b1001011
    NMADD = 0b1001111
    OP_FP = 0b1010011
    BRANCH = 0b1100011
    JALR = 0b1100111
    JAL = 0b1101111
    SYSTEM = 0b1110011

class FuType(Enum, shape = unsigned(4)):
    NONE = 0
    LOAD = 1
    STORE = 2
    ALU = 3
    CTRL_FLOW = 4
    MULT = 5
    CSR = 6
    FPU = 7
    FPU_VEC = 8
    ACCEL = 9

class FuOp(Enum, shape = unsigned(8)):
    # integer arithmetic and logic
    ADD = 0
    SUB = 1
    ADDW = 2
    SUBW = 3
    XORL = 4
    ORL = 5
    ANDL = 6
    SRA = 7
    SRL = 8
    SLL = 9
    SRLW = 10
    SLLW = 11
    SRAW = 12
    SLTS = 13
    SLTU = 14
    # branch comparisons
    EQ = 15
    NE = 16
    LTS = 17
    LTU = 18
    GES = 19
    GEU = 20
    # jumps
    JAL = 21
    JALR = 22
    # system
    MRET = 23
    SRET = 24
    DRET = 25
    ECALL = 26
    EBREAK = 27
    WFI = 28
    FENCE = 29
    FENCE_I = 30
    SFENCE_VMA = 31
    CSR_WRITE = 32
    CSR_READ = 33
    CSR_SET = 34
    CSR_CLEAR = 35
    # loads and stores
    LD = 36
    SD = 37
    LW = 38
    LWU = 39
    SW = 40
    LH = 41
    LHU = 42
    SH = 43
    LB = 44
    SB = 45
    LBU = 46
    # atomics
    AMO_LRW = 47
    AMO_LRD = 48
    AMO_SCW = 49
    AMO_SCD = 50
    AMO_SWAPW = 51
    AMO_ADDW = 52
    AMO_ANDW = 53
    AMO_ORW = 54
    AMO_XORW = 55
    AMO_MAXW = 56
    AMO_MAXWU = 57
    AMO_MINW = 58
    AMO_MINWU = 59
    AMO_SWAPD = 60
    AMO_ADDD = 61
    AMO_ANDD = 62
    AMO_ORD = 63
    AMO_XORD = 64
    AMO_MAXD = 65
    AMO_MAXDU = 66
    AMO_MIND = 67
    AMO_MINDU = 68
    # multiply and divide
    MUL = 69
    MULH = 70
    MULHU = 71
    MULHSU = 72
    MULW = 73
    DIV = 74
    DIVU = 75
    DIVW = 76
    DIVUW = 77
    REM = 78
    REMU = 79
    REMW = 80
    REMUW = 81
    # floating point loads and stores
    FLD = 82
    FLW = 83
    FLH = 84
    FLB = 85
    FSD = 86
    FSW = 87
    FSH = 88
    FSB = 89
    # scalar floating point
    FADD = 90
    FSUB = 91
    FMUL = 92
    FDIV = 93
    FMIN_MAX = 94
    FSQRT = 95
    FMADD = 96
    FMSUB = 97
    FNMSUB = 98
    FNMADD = 99
    FCVT_F2I = 100
    FCVT_I2F = 101
    FCVT_F2F = 102
    FSGNJ = 103
    FMV_F2X = 104
    FMV_X2F = 105
    FCMP = 106
    FCLASS = 107
    # vectorial floating point
    VFMIN = 108
    VFMAX = 109
    VFSGNJ = 110
    VFSGNJN = 111
    VFSGNJX = 112
    VFEQ = 113
    VFNE = 114
    VFLT = 115
    VFGE = 116
    VFLE = 117
    VFGT = 118
    VFCPKAB_S = 119
    VFCPKCD_S = 120
    VFCPKAB_D = 121
    VFCPKCD_D = 122
    # bit manipulation
    ADDUW = 123
    SH1ADD = 124
    SH2ADD = 125
    SH3ADD = 126
    SH1ADDUW = 127
    SH2ADDUW = 128
    SH3ADDUW = 129
    CLMUL = 130
    CLMULH = 131
    CLMULR = 132
    ANDN = 133
    ORN = 134
    XNOR = 135
    CLZ = 136
    CLZW = 137
    CTZ = 138
    CTZW = 139
    CPOP = 140
    CPOPW = 141
    MAX = 142
    MAXU = 143
    MIN = 144
    MINU = 145
    SEXTB = 146
    SEXTH = 147
    ZEXTH = 148
    ROL = 149
    ROLW = 150
    ROR = 151
    RORI = 152
    RORIW = 153
    RORW = 154
    ORCB = 155
    REV8 = 156
    BCLR = 157
    BCLRI = 158
    BEXT = 159
    BEXTI = 160
    BINV = 161
    BINVI = 162
    BSET = 163
    BSETI = 164
    SLLIUW = 165
    # conditional zero
    CZERO_EQZ = 166
    CZERO_NEZ = 167
    # coprocessor / accelerator
    OFFLOAD = 168
    ACCEL_ADDR_EXT = 169
    ACCEL_TENSOR_MODE = 170
    ACCEL_TENSOR_INDEX = 171

class ImmSel(Enum, shape = unsigned(3)):
    NONE = 0
    I = 1
    S = 2
    SB = 3
    U = 4
    UJ = 5
    # Not an immediate: the rs3 field gets zero-extended into the result.
    RS3 = 6

# Bit 5 marks an interrupt; the bottom five bits are the architectural cause
# number. See mcause() for the XLEN-wide encoding.
class Cause(Enum, shape = unsigned(6)):
    INSTR_ADDR_MISALIGNED = 0
    INSTR_ACCESS_FAULT = 1
    ILLEGAL_INSTR = 2
    BREAKPOINT = 3
    ENV_CALL_UMODE = 8
    ENV_CALL_SMODE = 9
    ENV_CALL_MMODE = 11
    INSTR_PAGE_FAULT = 12
    DEBUG_REQUEST = 24

    S_SW_INTERRUPT = 0b100000 | 1
    M_SW_INTERRUPT = 0b100000 | 3
    S_TIMER_INTERRUPT = 0b100000 | 5
    M_TIMER_INTERRUPT = 0b100000 | 7
    S_EXT_INTERRUPT = 0b100000 | 9
    M_EXT_INTERRUPT = 0b100000 | 11

def mcause(cause, xlen = 64):
    """Returns the value software reads from mcause for a Cause."""
    cause = Cause(cause)
    code = cause.value & 0b11111
    if cause.value & 0b100000:
        return (1 << (xlen - 1)) | code
    return code

class PrivLevel(Enum, shape = unsigned(2)):
    U = 0
    S = 1
    # 2 is reserved
    M = 3

# Extension context status, as found in mstatus.FS.
class XStatus(Enum, shape = unsigned(2)):
    OFF = 0
    INITIAL = 1
    CLEAN = 2
    DIRTY = 3

# Control-flow type predicted by the frontend. Opaque to decode.
class CfType(Enum, shape = unsigned(3)):
    NO_CF = 0
    BRANCH = 1
    JUMP = 2
    JUMPR = 3
    RETURN = 4

class AccelPhase(Enum, shape = unsigned(2)):
    START = 0b00
    APPEND = 0b01
    END = 0b10

class AccelDesc(Enum, shape = unsigned(2)):
    ADDR_EXT = 0b00
    TENSOR_MODE = 0b01
    TENSOR_INDEX = 0b10

class AccelMemMode(Enum, shape = unsigned(1)):
    LOAD = 0
    STORE = 1

class ElemWidth(Enum, shape = unsigned(2)):
    W8 = 0b00
    W16 = 0b01
    W32 = 0b10
    W64 = 0b11

# Interrupt bit positions in mip/mie/mideleg.
S_SW_IRQ = 1
M_SW_IRQ = 3
S_TIMER_IRQ = 5
M_TIMER_IRQ = 7
S_EXT_IRQ = 9
M_EXT_IRQ = 11

class IrqCtrl(Struct):
    mie: unsigned(16)
    mip: unsigned(16)
    mideleg: unsigned(16)
    # mstatus.SIE
    sie: unsigned(1)
    # Interrupts are globally enabled for the current privilege level.
    global_enable: unsigned(1)

class DecodeContext(Struct):
    """CSR and interrupt state the decoder needs to judge legality. This is a
    snapshot; the decoder never writes it."""
    priv: PrivLevel
    debug_mode: unsigned(1)
    fs: XStatus
    frm: unsigned(3)
    # mstatus.TVM, TW and TSR
    tvm: unsigned(1)
    tw: unsigned(1)
    tsr: unsigned(1)
    irq_ctrl: IrqCtrl
    # External interrupt pins. Bit 1 is the supervisor pin; bit 0, the
    # machine pin, is carried for the CSR file and decode ignores it.
    irq: unsigned(2)
    debug_req: unsigned(1)

def ExceptionRecord(xlen = 64):
    return StructLayout({
        'valid': unsigned(1),
        'cause': Cause,
        'tval': unsigned(xlen),
    })

def BranchPredict(xlen = 64):
    return StructLayout({
        'cf': CfType,
        'predict_address': unsigned(xlen),
    })

def DecodedInstruction(xlen = 64):
    return StructLayout({
        'pc': unsigned(xlen),
        'fu': FuType,
        'op': FuOp,
        'rs1': unsigned(5),
        'rs2': unsigned(5),
        'rs3': unsigned(5),
        'rd': unsigned(5),
        # immediate, or the rs3 index for ImmSel.RS3
        'result': unsigned(xlen),
        'use_imm': unsigned(1),
        'use_pc': unsigned(1),
        'use_zimm': unsigned(1),
        'is_compressed': unsigned(1),
        'vfp': unsigned(1),
        'is_control_flow': unsigned(1),
        'ex': ExceptionRecord(xlen),
        'bp': BranchPredict(xlen),
    })

class AccelPayload(Struct):
    valid: unsigned(1)
    phase: AccelPhase
    desc: AccelDesc
    mem_mode: AccelMemMode
    elem_width: ElemWidth
    vdim: unsigned(3)
    pd: unsigned(3)
    vd: unsigned(5)
    rs3: unsigned(5)

# Everything the opcode branches fill in before the immediate and the
# exception state are resolved.
class DecodeFields(Struct):
    fu: FuType
    op: FuOp
    rs1: unsigned(5)
    rs2: unsigned(5)
    rs3: unsigned(5)
    rd: unsigned(5)
    imm_sel: ImmSel
    use_pc: unsigned(1)
    use_zimm: unsigned(1)
    vfp: unsigned(1)
    is_control_flow: unsigned(1)
    ecall: unsigned(1)
    ebreak: unsigned(1)
    illegal: unsigned(1)
