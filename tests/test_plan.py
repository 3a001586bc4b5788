from synthdeploy.plan import deployment_plan, wiring_plan

SYNTHS = ["XDR", "sUSD"]


def test_deployment_order():
    identifiers = [str(step.identifier) for step in deployment_plan(SYNTHS)]
    assert identifiers == [
        "SafeDecimalMath",
        "ExchangeRates",
        "Proxy.FeePool",
        "FeePool",
        "SynthetixState",
        "Proxy.Synthetix",
        "TokenState.Synthetix",
        "Synthetix",
        "SynthetixEscrow",
        "TokenState.XDR",
        "Proxy.XDR",
        "Synth.XDR",
        "TokenState.sUSD",
        "Proxy.sUSD",
        "Synth.sUSD",
        "Depot",
    ]


def test_deployment_order_follows_synths():
    identifiers = [str(step.identifier) for step in deployment_plan(["sUSD", "XDR"])]
    assert identifiers[9:15] == [
        "TokenState.sUSD",
        "Proxy.sUSD",
        "Synth.sUSD",
        "TokenState.XDR",
        "Proxy.XDR",
        "Synth.XDR",
    ]


def test_wiring_order():
    calls = [(str(step.target), step.method) for step in wiring_plan(SYNTHS)]
    assert calls == [
        ("Proxy.FeePool", "setTarget"),
        ("Proxy.Synthetix", "setTarget"),
        ("TokenState.Synthetix", "setBalanceOf"),
        ("TokenState.Synthetix", "setAssociatedContract"),
        ("SynthetixState", "setAssociatedContract"),
        ("Synthetix", "setEscrow"),
        ("SynthetixEscrow", "setSynthetix"),
        ("FeePool", "setSynthetix"),
        ("TokenState.XDR", "setAssociatedContract"),
        ("Proxy.XDR", "setTarget"),
        ("Synthetix", "addSynth"),
        ("TokenState.sUSD", "setAssociatedContract"),
        ("Proxy.sUSD", "setTarget"),
        ("Synthetix", "addSynth"),
        ("Depot", "setSynthetix"),
    ]


def test_synth_wiring_targets_its_own_synth():
    add_synth = [step for step in wiring_plan(SYNTHS) if step.method == "addSynth"]
    referenced = [str(step.args[0].identifier) for step in add_synth]
    assert referenced == ["Synth.XDR", "Synth.sUSD"]
