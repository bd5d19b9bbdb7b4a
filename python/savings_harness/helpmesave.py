"""
HelpMeSave contract constants.

The contract is treated as an opaque artifact: the ABI below only lists the
entry points the harness drives, and the literal bytecode is the exact
creation input of the historical mainnet deployment.
"""

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# 1000 ether, in wei
SAVING_GOAL = Web3.to_wei(1000, "ether")

# Numeric password revealed by the historical recovery transaction
RECOVERY_PASSWORD = 0x98652370388425360742325
WRONG_PASSWORD = 0x00

# Creation input of mainnet tx 0xcd868f3e..., see canonical.MAINNET_FORK
REAL_BYTECODE = (
    "0x606060405234610000575b61026b806100186000396000f3606060405236156100615760e060020a600035046322d122a9"
    "811461006e5780632b079b2e1461007d578063363c51dc1461008f5780633ccfd60b146100a1578063cb12b48f146100b057"
    "8063d0e30db014610061578063edbb1d43146100e3575b61006c5b6100695b5b565b005b346100005761006c610105565b00"
    "5b346100005761006c60043561014a565b005b346100005761006c6004356101a9565b005b346100005761006c6101df565b"
    "005b34610000576100bd610256565b60408051600160a060020a039092168252519081900360200190f35b61006c61006956"
    "5b005b34610000576100f0610265565b60408051918252519081900360200190f35b5b565b6000805473ffffffffffffffff"
    "ffffffffffffffffffffffff19166c0100000000000000000000000033810204179055610069683635c9adc5dea000006101"
    "a9565b5b565b60005433600160a060020a03908116911614156101a357604080518281529051908190036020019020678ac7"
    "230489e80000900666af8990e3c44a99141561019e57600054600160a060020a0316ff6101a3565b610000565b5b5b5b5056"
    "5b60005433600160a060020a03908116911614156101a357600154600160a060020a03301631106101a35760018190555b5b"
    "5b5b50565b6000805433600160a060020a03908116911614156101a35750600054600160a060020a03308116319133821691"
    "1614158061021b575060015481105b15610224575060005b604051600160a060020a033316906108fc908390818181818188"
    "88f1935050505015156101a357610000565b5b5b5b50565b600054600160a060020a031681565b6001548156"
)

HELPMESAVE_ABI = [
    {
        "constant": False,
        "inputs": [],
        "name": "MyTestWallet7",
        "outputs": [],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [{"name": "_password", "type": "uint256"}],
        "name": "recovery",
        "outputs": [],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [{"name": "new_goal", "type": "uint256"}],
        "name": "set_savings_goal",
        "outputs": [],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [],
        "name": "withdraw",
        "outputs": [],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "me",
        "outputs": [{"name": "", "type": "address"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [],
        "name": "deposit",
        "outputs": [],
        "payable": True,
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "savings_goal",
        "outputs": [{"name": "", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function"
    },
    {
        "payable": True,
        "stateMutability": "payable",
        "type": "fallback"
    }
]

# Methods that move value or state; the two accessors are read with eth_call
OWNERSHIP_CLAIM = "MyTestWallet7"
DEPOSIT = "deposit"
WITHDRAW = "withdraw"
RECOVERY = "recovery"
OWNER_ACCESSOR = "me"
GOAL_ACCESSOR = "savings_goal"
