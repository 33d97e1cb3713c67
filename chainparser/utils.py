from typing import List, Optional

from pycoin.symbols.btc import network as btc_network
from pycoin.symbols.xtn import network as xtn_network

# Script types that pycoin can render as an address
ADDRESS_SCRIPT_TYPES = ('P2PKH', 'P2SH', 'P2WPKH', 'P2WSH', 'P2TR')

_OPCODES = {
    0x00: 'OP_0', 0x51: 'OP_1', 0x52: 'OP_2', 0x53: 'OP_3',
    0x6a: 'OP_RETURN', 0x76: 'OP_DUP', 0x87: 'OP_EQUAL', 0x88: 'OP_EQUALVERIFY',
    0xa9: 'OP_HASH160', 0xac: 'OP_CHECKSIG', 0xae: 'OP_CHECKMULTISIG',
}


def address_network(network_name: str):
    """pycoin network for 'mainnet' or 'testnet'."""
    return xtn_network if network_name == 'testnet' else btc_network


def disassemble(script: bytes) -> List[str]:
    """Coarse disassembly: direct pushes as PUSH_<len>:<hex>, known opcodes by name."""
    disasm = []
    i = 0
    while i < len(script):
        op = script[i]
        i += 1
        if 1 <= op <= 75:
            data_len = op
            if i + data_len > len(script):
                return ['ERROR']
            disasm.append(f'PUSH_{data_len}:{script[i:i + data_len].hex()}')
            i += data_len
        else:
            disasm.append(_OPCODES.get(op, f'OP_{op:02x}'))
    return disasm


def get_script_type(script: bytes) -> str:
    """
    Classifies a locking script into one of: P2PK, P2PKH, P2SH, P2MS, P2WPKH,
    P2WSH, P2TR, OP_RETURN, or 'unknown'.
    """
    if script[:1] == b'\x6a':
        return 'OP_RETURN'

    disasm = disassemble(script)

    if (len(disasm) == 5 and
        disasm[0] == 'OP_DUP' and
        disasm[1] == 'OP_HASH160' and
        disasm[2].startswith('PUSH_20:') and
        disasm[3] == 'OP_EQUALVERIFY' and
        disasm[4] == 'OP_CHECKSIG'):
        return 'P2PKH'

    if (len(disasm) == 3 and
        disasm[0] == 'OP_HASH160' and
        disasm[1].startswith('PUSH_20:') and
        disasm[2] == 'OP_EQUAL'):
        return 'P2SH'

    if len(disasm) == 2 and disasm[0] == 'OP_0':
        if disasm[1].startswith('PUSH_20:'):
            return 'P2WPKH'
        if disasm[1].startswith('PUSH_32:'):
            return 'P2WSH'

    if (len(disasm) == 2 and
        disasm[0] == 'OP_1' and
        disasm[1].startswith('PUSH_32:')):
        return 'P2TR'

    if (len(disasm) == 2 and disasm[1] == 'OP_CHECKSIG' and
        (disasm[0].startswith('PUSH_33:') or disasm[0].startswith('PUSH_65:'))):
        return 'P2PK'

    if (len(disasm) >= 4 and disasm[-1] == 'OP_CHECKMULTISIG' and
        disasm[-2] in ['OP_1', 'OP_2', 'OP_3'] and disasm[0] in ['OP_1', 'OP_2', 'OP_3']):
        pubkey_pushes = [d for d in disasm[1:-2] if d.startswith('PUSH_33:') or d.startswith('PUSH_65:')]
        if len(pubkey_pushes) >= 2:
            return 'P2MS'

    return 'unknown'


def address_for_script(script: bytes, network_name: str = 'mainnet') -> Optional[str]:
    """Render the address paid by a locking script, or None for script types without one."""
    if get_script_type(script) not in ADDRESS_SCRIPT_TYPES:
        return None
    address = address_network(network_name).address.for_script(script)
    # pycoin renders scripts it cannot encode (e.g. taproot) as "???"
    if address and str(address) != "???":
        return str(address)
    return None
