import os

from strata.engine import Engine

PATH = os.path.dirname(os.path.abspath(__file__))


def playPlan():
    print("\n----- ----- ----- ----- ----- ----- \nPlan\n----- -----")
    e = Engine.load(path=PATH)
    print(e.graph().to_dot())
    print(e.plan().render())


def playApply():
    print("\n----- ----- ----- ----- ----- ----- \nApply\n----- -----")
    e = Engine.load(path=PATH)
    result = e.apply()
    print(result.render())
    print(e.outputs())
    print(e.plan().render())


def playDestroy():
    print("\n----- ----- ----- ----- ----- ----- \nDestroy\n----- -----")
    e = Engine.load(path=PATH)
    print(e.plan(destroy=True).render())
    print(e.destroy().render())
    print(e.show().to_json(indent=2))


playPlan()
playApply()
playDestroy()
