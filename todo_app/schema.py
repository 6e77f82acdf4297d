from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class TaskCreate(BaseModel):
    title: str = ""
    # Accepted on the wire but ignored: new tasks always start incomplete.
    completed: StrictBool = False


class TaskUpdate(BaseModel):
    title: str = ""
    completed: StrictBool = False


class Task(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    completed: bool = False
    created_at: datetime = Field(alias="createdAt")


class TaskList(BaseModel):
    data: list[Task]


class TaskCreated(BaseModel):
    message: str
    todo_id: str


class Message(BaseModel):
    message: str
