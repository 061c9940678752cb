"""Conversions between ORM rows and pydantic models."""

from fieldcollect.database import MultipleChoiceORM, OptionORM, TaskORM
from fieldcollect.models import MultipleChoice, Option, Task


def task_from_orm(task_orm: TaskORM) -> Task:
    return Task.model_validate(
        {
            "id": task_orm.id,
            "job_id": task_orm.job_id,
            "index": task_orm.index,
            "task_type": task_orm.task_type,
            "label": task_orm.label,
            "is_required": task_orm.is_required,
        }
    )


def task_to_orm(task: Task) -> TaskORM:
    return TaskORM(
        id=task.id,
        job_id=task.job_id,
        index=task.index,
        task_type=task.task_type.value,
        label=task.label,
        is_required=task.is_required,
    )


def multiple_choice_from_orm(mc_orm: MultipleChoiceORM) -> MultipleChoice:
    return MultipleChoice.model_validate(
        {
            "id": mc_orm.id,
            "task_id": mc_orm.task_id,
            "type": mc_orm.type,
            "has_other_option": mc_orm.has_other_option,
        }
    )


def multiple_choice_to_orm(multiple_choice: MultipleChoice) -> MultipleChoiceORM:
    return MultipleChoiceORM(
        id=multiple_choice.id,
        task_id=multiple_choice.task_id,
        type=multiple_choice.type.value,
        has_other_option=multiple_choice.has_other_option,
    )


def option_from_orm(option_orm: OptionORM) -> Option:
    return Option.model_validate(
        {
            "id": option_orm.id,
            "task_id": option_orm.task_id,
            "index": option_orm.index,
            "code": option_orm.code,
            "label": option_orm.label,
        }
    )


def option_to_orm(option: Option) -> OptionORM:
    return OptionORM(
        id=option.id,
        task_id=option.task_id,
        index=option.index,
        code=option.code,
        label=option.label,
    )
