import shutil
from typing import List

# Chains a blocked station is dropped in: routed traffic and traffic to us.
DROP_CHAINS = ("FORWARD", "INPUT")


def _iptables_bin() -> str:
    return shutil.which("iptables") or "iptables"


def _mac_rule(chain: str, mac: str) -> List[str]:
    return [chain, "-m", "mac", "--mac-source", mac, "-j", "DROP"]


def insert_drop_cmds(mac: str) -> List[List[str]]:
    ipt = _iptables_bin()
    return [[ipt, "-I", *_mac_rule(chain, mac)] for chain in DROP_CHAINS]


def delete_drop_cmds(mac: str) -> List[List[str]]:
    ipt = _iptables_bin()
    return [[ipt, "-D", *_mac_rule(chain, mac)] for chain in DROP_CHAINS]
