"""Pytest configuration and fixtures for the canister mapper tests."""

from __future__ import annotations

import pytest

from canister_mapper.transport import RecordedTransport

CANISTER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"

USERS_DID_JS = """\
export const idlFactory = ({ IDL }) => {
  const User = IDL.Record({ 'id' : IDL.Nat, 'name' : IDL.Text });
  return IDL.Service({
    'getUsers' : IDL.Func([], [IDL.Vec(User)], ['query']),
  });
};
export const init = ({ IDL }) => { return []; };
"""

SERVICE_DID_JS = """\
export const idlFactory = ({ IDL }) => {
  const Node = IDL.Rec();
  const User = IDL.Record({ 'id' : IDL.Nat, 'name' : IDL.Text });
  const Profile = IDL.Record({
    'displayName' : IDL.Text,
    'isPublic' : IDL.Bool,
    'bio' : IDL.Opt(IDL.Text),
  });
  const Status = IDL.Variant({ 'Active' : IDL.Null, 'Paused' : IDL.Text });
  const Result = IDL.Variant({ 'ok' : IDL.Null, 'err' : IDL.Text });
  Node.fill(IDL.Record({ 'name' : IDL.Text, 'children' : IDL.Vec(Node) }));
  return IDL.Service({
    'getUsers' : IDL.Func([], [IDL.Vec(User)], ['query']),
    'setUsers' : IDL.Func([IDL.Vec(User)], [Result], []),
    'getProfile' : IDL.Func([], [IDL.Variant({ 'ok' : Profile, 'err' : IDL.Text })], ['query']),
    'updateProfile' : IDL.Func([Profile], [Result], []),
    'getCounter' : IDL.Func([], [IDL.Nat], ['query']),
    'getSecret' : IDL.Func([IDL.Text], [IDL.Text], ['query']),
    'getStatus' : IDL.Func([], [Status], ['query']),
    'getTree' : IDL.Func([], [Node], ['query']),
    'getLogs' : IDL.Func([], [IDL.Vec(IDL.Text)], ['query']),
    'clearAllLogs' : IDL.Func([], [], []),
    'searchUsers' : IDL.Func([IDL.Text, IDL.Opt(IDL.Nat)], [IDL.Vec(User)], ['query']),
    'resetAll' : IDL.Func([], [], []),
    'whoami' : IDL.Func([], [IDL.Principal], ['query']),
  });
};
export const init = ({ IDL }) => { return []; };
"""

SERVICE_DID_D_TS = """\
import type { Principal } from '@dfinity/principal';
import type { ActorMethod } from '@dfinity/agent';

export interface User { 'id' : bigint, 'name' : string }
export type Result = { 'ok' : null } |
  { 'err' : string };
export interface _SERVICE {
  'getCounter' : ActorMethod<[], bigint>,
  'getSecret' : ActorMethod<[string], string>,
  'getUsers' : ActorMethod<[], Array<User>>,
  'searchUsers' : ActorMethod<[string, [] | [bigint]], Array<User>>,
  'setUsers' : ActorMethod<[Array<User>], Result>,
  'resetAll' : ActorMethod<[], undefined>,
}
export declare const idlFactory: IDL.InterfaceFactory;
"""

SERVICE_DID = """\
type User = record { id : nat; name : text };
type Result = variant { ok; err : text };
service : (opt record { owner : principal }) -> {
  getCounter : () -> (nat) query;
  getSecret : (text) -> (text) query;
  getUsers : () -> (vec User) query;
  searchUsers : (text, opt nat) -> (vec User) composite_query;
  setUsers : (vec User) -> (Result);
  notify : (blob) -> () oneway;
}
"""


@pytest.fixture
def users():
    """Users as returned by the service."""
    return [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]


@pytest.fixture
def service_replies(users):
    """Replies of the service described by `SERVICE_DID_JS`."""
    return {
        "getUsers": users,
        "setUsers": {"ok": None},
        "getProfile": {"ok": {"displayName": "Ada", "isPublic": True, "bio": []}},
        "updateProfile": {"ok": None},
        "getCounter": 42,
        "getSecret": "hidden",
        "getStatus": {"Active": None},
        "getTree": {"name": "root", "children": []},
        "getLogs": ["started"],
        "searchUsers": users[:1],
        "whoami": CANISTER_ID,
    }


@pytest.fixture
def transport(service_replies):
    return RecordedTransport(service_replies)
