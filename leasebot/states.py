from aiogram.fsm.state import State, StatesGroup

class AddPropertyState(StatesGroup):
    waiting_for_name = State()
    waiting_for_address = State()
    waiting_for_units = State()

class AddUnitState(StatesGroup):
    waiting_for_name = State()
    waiting_for_rent = State()
    waiting_for_cycle = State()

class AssignTenantState(StatesGroup):
    waiting_for_name = State()
    waiting_for_email = State()

class JoinState(StatesGroup):
    waiting_for_code = State()
